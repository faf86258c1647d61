"""CLI output formatting and helpers."""

import asyncio
import json
from datetime import datetime
from typing import Any

import typer

from parley.api import Result, dispatch
from parley.config import load_settings
from parley.engine import Engine
from parley.errors import ParleyError


def format_local_time(timestamp: str | None) -> str:
    """Format ISO timestamp as readable local time."""
    if not timestamp:
        return "never"
    try:
        return datetime.fromisoformat(timestamp).astimezone().strftime("%Y-%m-%d %H:%M:%S")
    except (ValueError, TypeError):
        return timestamp


def output_json(data, ctx: typer.Context):
    """Output data as JSON if requested. Returns True if output, False otherwise."""
    if ctx.obj.get("json_output"):
        typer.echo(json.dumps(data, indent=2, default=str))
        return True
    return False


def should_output(ctx: typer.Context) -> bool:
    """Check if output should be printed (not quiet mode)."""
    return not ctx.obj.get("quiet_output")


def echo_if_output(msg: str, ctx: typer.Context):
    """Echo message only if not in quiet mode."""
    if should_output(ctx):
        typer.echo(msg)


def fail(message: str, ctx: typer.Context) -> None:
    output_json({"status": "error", "message": message}, ctx) or typer.echo(
        f"❌ {message}", err=True
    )
    raise typer.Exit(code=1)


async def _call(ctx: typer.Context, name: str, arguments: dict[str, Any]) -> Result:
    engine = Engine(load_settings(ctx.obj.get("root")))
    try:
        return await dispatch(engine, name, arguments)
    finally:
        engine.close()


def run(ctx: typer.Context, name: str, arguments: dict[str, Any] | None = None) -> Result:
    """Dispatch one operation against the storage root; domain errors exit with code 1."""
    try:
        return asyncio.run(_call(ctx, name, arguments or {}))
    except ParleyError as e:
        fail(str(e), ctx)
