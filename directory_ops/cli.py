"""CLI interface for directory-ops using Click."""

import json
import sys
from typing import Any, Dict, Optional

import click

from . import __version__
from .commands import build_registry
from .config import DEFAULT_TIMEOUT, DirectorySettings
from .dispatcher import CommandRegistry, InvocationRequest
from .log import configure_logging, get_logger

logger = get_logger(__name__)


def _colorize(text: str, color: str) -> str:
    """Colorize text using ANSI codes when stdout is a terminal."""
    if not sys.stdout.isatty():
        return text
    return click.style(text, fg=color)


def _load_registry(ctx: click.Context) -> CommandRegistry:
    """Validate settings and build the registry once per process."""
    obj = ctx.ensure_object(dict)
    if "registry" not in obj:
        settings: DirectorySettings = obj["settings"]
        problems = settings.validate()
        if problems:
            raise click.UsageError("; ".join(problems))
        directory = settings.build_client()
        ctx.call_on_close(directory.close)
        obj["registry"] = build_registry(directory)
    return obj["registry"]


@click.group()
@click.option("--org-url", envvar="DIRECTORY_ORG_URL",
              help="Organization URL (env: DIRECTORY_ORG_URL)")
@click.option("--token", envvar="DIRECTORY_API_TOKEN",
              help="API token (env: DIRECTORY_API_TOKEN)")
@click.option("--timeout", envvar="DIRECTORY_TIMEOUT", type=float, default=DEFAULT_TIMEOUT,
              show_default=True, help="Per-request timeout in seconds (env: DIRECTORY_TIMEOUT)")
@click.option("--tls-no-verify", is_flag=True, help="Skip TLS certificate verification")
@click.option("--ca-bundle", type=click.Path(exists=True, dir_okay=False),
              help="Path to a CA bundle for TLS verification")
@click.option("--proxy", help="HTTP/HTTPS proxy URL")
@click.option("--log-level", envvar="DIRECTORY_LOG_LEVEL", default="WARNING", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
              help="Log level for stderr logging (env: DIRECTORY_LOG_LEVEL)")
@click.option("--log-json", is_flag=True, help="Emit logs as JSON lines")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, org_url: Optional[str], token: Optional[str], timeout: float,
         tls_no_verify: bool, ca_bundle: Optional[str], proxy: Optional[str],
         log_level: str, log_json: bool):
    """Schema-validated commands over a remote identity directory.

    Users, groups, attribute search with fallback, and bulk onboarding.

    Examples:

    \b
      directory-ops commands
      directory-ops call get_user --args '{"userId": "00u1"}'
      directory-ops serve < requests.jsonl
    """
    configure_logging(log_level, json_output=log_json)
    obj = ctx.ensure_object(dict)
    obj.setdefault("settings", DirectorySettings(
        org_url=org_url,
        api_token=token,
        timeout=timeout,
        tls_no_verify=tls_no_verify,
        ca_bundle=ca_bundle,
        proxy=proxy,
    ))


@main.command("commands")
@click.pass_context
def list_commands(ctx: click.Context):
    """Print the command descriptors as JSON."""
    registry = _load_registry(ctx)
    click.echo(json.dumps(registry.list_commands(), indent=2))


@main.command("call")
@click.argument("name")
@click.option("--args", "raw_args", default="{}", show_default=True,
              help="Command arguments as a JSON object")
@click.option("--json", "json_output", is_flag=True, help="Print the raw result object")
@click.pass_context
def call(ctx: click.Context, name: str, raw_args: str, json_output: bool):
    """Invoke one command and print its result."""
    try:
        arguments = json.loads(raw_args)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON: {e}", param_hint="--args")

    registry = _load_registry(ctx)
    result = registry.dispatch(name, arguments)

    if json_output:
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif result.is_error:
        click.echo(_colorize(result.joined_text, "red"))
    else:
        click.echo(result.joined_text)
    sys.exit(1 if result.is_error else 0)


@main.command("serve")
@click.pass_context
def serve(ctx: click.Context):
    """Answer JSON-line requests from stdin, one JSON line per response on stdout.

    \b
      {"id": 1, "method": "list_commands"}
      {"id": 2, "method": "invoke", "params": {"name": "get_user", "arguments": {"userId": "00u1"}}}
    """
    registry = _load_registry(ctx)
    for line in sys.stdin:
        line = line.strip()
        if not line:
            continue
        click.echo(json.dumps(handle_line(registry, line)))


def handle_line(registry: CommandRegistry, line: str) -> Dict[str, Any]:
    """Answer one protocol line.  Malformed input yields an ``error`` response."""
    try:
        message = json.loads(line)
    except json.JSONDecodeError as e:
        return {"id": None, "error": f"Invalid JSON: {e}"}
    if not isinstance(message, dict):
        return {"id": None, "error": "Request must be a JSON object"}

    request_id = message.get("id")
    method = message.get("method")
    if method == "list_commands":
        return {"id": request_id, "result": registry.list_commands()}
    if method == "invoke":
        params = message.get("params")
        if not isinstance(params, dict):
            return {"id": None, "error": "invoke requires a 'params' object"}
        try:
            request = InvocationRequest.from_params(params)
        except ValueError as e:
            return {"id": None, "error": str(e)}
        return {"id": request_id, "result": registry.handle(request).to_dict()}

    logger.warning("unknown_method", method=method)
    return {"id": None, "error": f"Unknown method: {method}"}


if __name__ == "__main__":
    main()
