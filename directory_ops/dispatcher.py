"""Command registry and dispatcher.

A :class:`Command` pairs a name with an input shape and a handler.  The
:class:`CommandRegistry` is filled once at startup (see
``directory_ops.commands.build_registry``) and is read-only afterwards.

``CommandRegistry.dispatch()`` runs validate -> invoke -> normalize and never
raises: unknown names, validation failures, and anything the handler raises
(directory failures included) come back as an :class:`InvocationResult` with
``is_error=True``.  The carrying protocol has no separate error channel, so
this is the single place where failures are turned into results.
"""

import json
from typing import Any, Callable, Dict, List, Optional

from .errors import UnknownCommand, ValidationError
from .log import get_logger
from .validator import ArgumentValidator, to_json_schema

logger = get_logger(__name__)


class InvocationResult:
    """Outcome of one command invocation.

    Attributes:
        content:  Ordered content blocks, each ``{"type": "text", "text": ...}``.
        is_error: True when the invocation failed at any layer.
    """

    def __init__(self, content: Optional[List[Dict[str, str]]] = None, is_error: bool = False):
        self.content = list(content or [])
        self.is_error = is_error

    @classmethod
    def text(cls, *texts: str) -> "InvocationResult":
        """Successful result with one text block per argument."""
        return cls([{"type": "text", "text": t} for t in texts])

    @classmethod
    def error(cls, message: str) -> "InvocationResult":
        """Failed result carrying a single text block."""
        return cls([{"type": "text", "text": message}], is_error=True)

    @property
    def joined_text(self) -> str:
        """All text blocks joined with blank lines (CLI and test convenience)."""
        return "\n\n".join(block["text"] for block in self.content)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize in the wire shape ``{"content": [...], "isError": bool}``."""
        return {"content": [dict(block) for block in self.content], "isError": self.is_error}


class InvocationRequest:
    """One incoming call: a command name and its untyped arguments."""

    def __init__(self, command_name: str, raw_arguments: Optional[Dict[str, Any]] = None):
        self.command_name = command_name
        self.raw_arguments = raw_arguments

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "InvocationRequest":
        """Build from protocol params ``{"name": ..., "arguments": {...}}``."""
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError("Invocation params must include a command 'name'")
        return cls(name, params.get("arguments"))


# Handlers receive the injected directory client and the validated arguments
Handler = Callable[[Any, Dict[str, Any]], Any]


class Command:
    """A named, schema-validated operation.

    Args:
        name:        Unique command name (e.g. ``get_user``).
        description: One-line description advertised to callers.
        input_shape: Ordered field descriptors (see ``validator.field``).
        handler:     ``handler(directory, args)`` returning an
                     ``InvocationResult``, a string, or JSON-serializable data.
    """

    def __init__(self, name: str, description: str, input_shape: List[Dict[str, Any]], handler: Handler):
        self.name = name
        self.description = description
        self.input_shape = list(input_shape)
        self.handler = handler
        self.validator = ArgumentValidator(self.input_shape)

    def descriptor(self) -> Dict[str, Any]:
        """Advertised form: name, description and JSON Schema input shape."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": to_json_schema(self.input_shape),
        }


class CommandRegistry:
    """Maps command names to commands and dispatches invocations.

    Args:
        directory: The directory client handed to every handler.  Created once
                   at process start and shared read-only.
    """

    def __init__(self, directory: Any = None):
        self.directory = directory
        self._commands: Dict[str, Command] = {}

    # -- Registration --------------------------------------------------------

    def register(self, command: Command) -> Command:
        """Add a command.  Raises ``ValueError`` if the name is already taken."""
        if command.name in self._commands:
            raise ValueError(f"Command already registered: {command.name}")
        self._commands[command.name] = command
        return command

    def get(self, name: str) -> Command:
        """Look up a command by name or raise ``UnknownCommand``."""
        if not isinstance(name, str) or name not in self._commands:
            raise UnknownCommand(str(name))
        return self._commands[name]

    def list_commands(self) -> List[Dict[str, Any]]:
        """Snapshot of all command descriptors in registration order."""
        return [cmd.descriptor() for cmd in self._commands.values()]

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, name: str) -> bool:
        return name in self._commands

    # -- Dispatch ------------------------------------------------------------

    def handle(self, request: InvocationRequest) -> InvocationResult:
        """Dispatch an ``InvocationRequest``."""
        return self.dispatch(request.command_name, request.raw_arguments)

    def dispatch(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> InvocationResult:
        """Validate and run a command, always returning an ``InvocationResult``."""
        try:
            command = self.get(name)
        except UnknownCommand as exc:
            logger.warning("unknown_command", command=name)
            return InvocationResult.error(str(exc))

        try:
            args = command.validator.validate(arguments)
        except ValidationError as exc:
            logger.info("invalid_arguments", command=name, field=exc.path, reason=exc.message)
            return InvocationResult.error(f"Invalid arguments for {name}: {exc}")

        logger.debug("dispatch", command=name)
        try:
            raw = command.handler(self.directory, args)
        except Exception as exc:
            logger.error("command_failed", command=name, error=str(exc), error_type=type(exc).__name__)
            return InvocationResult.error(f"Error executing {name}: {exc}")

        result = _normalize(raw)
        logger.debug("dispatch_finished", command=name, is_error=result.is_error)
        return result


def _normalize(raw: Any) -> InvocationResult:
    """Coerce a handler's return value into an ``InvocationResult``."""
    if isinstance(raw, InvocationResult):
        return raw
    if raw is None:
        return InvocationResult.text("")
    if isinstance(raw, str):
        return InvocationResult.text(raw)
    try:
        return InvocationResult.text(json.dumps(raw, indent=2, default=str))
    except (TypeError, ValueError):
        return InvocationResult.text(str(raw))
