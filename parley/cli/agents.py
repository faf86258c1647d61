"""Agent directory commands."""

import typer

from .format import echo_if_output, fail, format_local_time, output_json, run


def register(app: typer.Typer) -> None:
    @app.command("agents")
    def agents_cmd(
        ctx: typer.Context,
        status: str = typer.Option(None, "--status", help="Only agents with this status"),
    ):
        """List registered agents."""
        result = run(ctx, "discover-agents")
        rows = [a for a in result.data if status is None or a["status"] == status]
        if output_json(rows, ctx):
            return
        if not rows:
            echo_if_output("No agents registered", ctx)
            return
        for agent in rows:
            echo_if_output(
                f"{agent['id'][-8:]}  {agent['name']:<20} {agent['status']:<20} "
                f"{format_local_time(agent['last_activity_at'])}",
                ctx,
            )

    @app.command("register")
    def register_cmd(
        ctx: typer.Context,
        name: str = typer.Argument(..., help="Agent name"),
        description: str = typer.Argument(..., help="What the agent does"),
        instance: str = typer.Option(None, "--instance", help="External process handle to track"),
    ):
        """Register a new agent."""
        result = run(
            ctx,
            "register-agent",
            {"name": name, "description": description, "instance_id": instance},
        )
        output_json(result.data, ctx) or echo_if_output(result.text, ctx)

    @app.command("unregister")
    def unregister_cmd(
        ctx: typer.Context,
        agent_id: str = typer.Argument(None, help="Agent id"),
        instance: str = typer.Option(None, "--instance", help="Unregister by instance id"),
    ):
        """Remove an agent from the directory."""
        if instance:
            result = run(ctx, "unregister-agent-by-instance", {"instance_id": instance})
        elif agent_id:
            result = run(ctx, "unregister-agent", {"agent_id": agent_id})
        else:
            fail("agent id or --instance required", ctx)
        if output_json(result.data, ctx):
            return
        if not result.data.get("success"):
            fail(result.text, ctx)
        echo_if_output(result.text, ctx)

    @app.command("status")
    def status_cmd(
        ctx: typer.Context,
        agent_id: str = typer.Argument(None, help="Agent id; omit for speaking stick status"),
        new_status: str = typer.Option(None, "--set", help="New status text"),
    ):
        """Show speaking stick status, or set an agent's status."""
        if agent_id and not new_status:
            fail("--set required when an agent id is given", ctx)
        if agent_id:
            result = run(ctx, "update-agent-status", {"agent_id": agent_id, "status": new_status})
        else:
            result = run(ctx, "get-speaking-stick-status")
        if output_json(result.data, ctx):
            return
        if agent_id and not result.data.get("success"):
            fail(result.text, ctx)
        echo_if_output(result.text, ctx)

    @app.command("profile")
    def profile_cmd(ctx: typer.Context, agent_id: str = typer.Argument(..., help="Agent id")):
        """Show an agent's profile and statistics."""
        result = run(ctx, "get-agent-profile", {"agent_id": agent_id})
        if output_json(result.data, ctx):
            return
        echo_if_output(result.text, ctx)
        if result.data["capabilities"]:
            echo_if_output(f"  capabilities: {', '.join(result.data['capabilities'])}", ctx)
        for rel in result.data["relationships"]:
            echo_if_output(
                f"  -> {rel['agent_id'][-8:]}: {rel['message_count']} ({rel['frequency']})", ctx
            )
