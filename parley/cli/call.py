"""Generic operation invocation."""

import json

import typer

from parley.api import names

from .format import echo_if_output, fail, output_json, run


def register(app: typer.Typer) -> None:
    @app.command("call")
    def call_cmd(
        ctx: typer.Context,
        operation: str = typer.Argument(..., help="Operation name, e.g. send-message"),
        args: str = typer.Option("{}", "--args", "-a", help="Arguments as a JSON object"),
    ):
        """Invoke any named operation with JSON arguments."""
        if operation not in names():
            fail(f"Unknown operation: {operation}. Available: {', '.join(names())}", ctx)
        try:
            arguments = json.loads(args)
        except json.JSONDecodeError as e:
            fail(f"--args is not valid JSON: {e}", ctx)
        if not isinstance(arguments, dict):
            fail("--args must be a JSON object", ctx)

        result = run(ctx, operation, arguments)
        output_json(result.to_dict(), ctx) or echo_if_output(result.text, ctx)
