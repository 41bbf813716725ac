"""Structured logging via structlog.

Logs always go to stderr because stdout carries the command protocol.
Sensitive keys (tokens, credentials, contact details) are redacted before
rendering.
"""

import sys
from typing import Any, Dict

import structlog

# Key names whose values never reach the log output
SENSITIVE_KEYS = frozenset({
    "authorization",
    "token",
    "api_token",
    "password",
    "email",
    "login",
    "secondemail",
    "mobilephone",
    "primaryphone",
    "csvdata",
})

_LEVELS = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
    "CRITICAL": 50,
}


def _redact_sensitive(_logger: Any, _method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor replacing sensitive values with ``***REDACTED***``."""
    for key in list(event_dict.keys()):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = "***REDACTED***"
    return event_dict


def _stderr_logger_factory(*_args: Any) -> structlog.PrintLogger:
    # Resolve sys.stderr per logger so redirected streams (tests, CliRunner) are honored
    return structlog.PrintLogger(sys.stderr)


def configure_logging(level: str = "WARNING", json_output: bool = False) -> None:
    """Configure structlog for the process.

    Args:
        level:       Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: Render one JSON object per line instead of console format.
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _redact_sensitive,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_LEVELS.get(level.upper(), 30)),
        context_class=dict,
        logger_factory=_stderr_logger_factory,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> Any:
    """Return a structlog logger bound to ``name`` (usually ``__name__``)."""
    return structlog.get_logger(name)
