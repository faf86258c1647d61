"""Messaging commands."""

import typer

from .format import echo_if_output, fail, format_local_time, output_json, run


def register(app: typer.Typer) -> None:
    @app.command("send")
    def send_cmd(
        ctx: typer.Context,
        recipient: str = typer.Argument(..., help="Recipient agent id"),
        content: str = typer.Argument(..., help="Message content"),
        sender: str = typer.Option(..., "--as", help="Sender agent id"),
    ):
        """Send a direct message."""
        result = run(ctx, "send-message", {"from": sender, "to": recipient, "message": content})
        output_json(result.data, ctx) or echo_if_output(result.text, ctx)

    @app.command("inbox")
    def inbox_cmd(ctx: typer.Context, agent_id: str = typer.Argument(..., help="Agent id")):
        """Read and remove queued messages for an agent."""
        result = run(ctx, "check-for-messages", {"agent_id": agent_id})
        if output_json(result.data, ctx):
            return
        if not result.data:
            echo_if_output("No new messages", ctx)
            return
        for msg in result.data:
            echo_if_output(
                f"[{format_local_time(msg['timestamp'])}] {msg['from_name']}: {msg['message']}",
                ctx,
            )

    @app.command("broadcast")
    def broadcast_cmd(
        ctx: typer.Context,
        content: str = typer.Argument(..., help="Message content"),
        sender: str = typer.Option(..., "--as", help="Sender agent id"),
        priority: str = typer.Option("normal", "--priority", "-p", help="low, normal or high"),
    ):
        """Broadcast to every other agent (subject to the speaking stick)."""
        result = run(
            ctx, "send-broadcast", {"from": sender, "message": content, "priority": priority}
        )
        if output_json(result.data, ctx):
            if not result.data["success"]:
                raise typer.Exit(code=1)
            return
        if not result.data["success"]:
            fail(result.text, ctx)
        echo_if_output(result.text, ctx)
