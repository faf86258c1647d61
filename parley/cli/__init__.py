"""parley CLI: thin command wrappers over the named operations."""

from pathlib import Path

import typer

from parley.config import load_settings
from parley.errors import ParleyError
from parley.lib import logs

from . import agents, call, messages

app = typer.Typer(add_completion=False)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    root: Path = typer.Option(None, "--root", help="Storage root (default: $PARLEY_HOME or ~/.parley)"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output in JSON format."),
    quiet_output: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
):
    """Coordinate agents: directory, mailboxes, broadcasts and the speaking stick."""
    if ctx.obj is None:
        ctx.obj = {}
    ctx.obj["root"] = root
    ctx.obj["json_output"] = json_output
    ctx.obj["quiet_output"] = quiet_output
    try:
        logs.configure(load_settings(root).logging_level)
    except ParleyError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e
    if ctx.resilient_parsing:
        return
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


agents.register(app)
messages.register(app)
call.register(app)


def main() -> None:
    """Entry point for parley command."""
    try:
        app()
    except SystemExit:
        raise
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from e


__all__ = ["app", "main"]
