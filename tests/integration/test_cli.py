import json

import pytest
from typer.testing import CliRunner

from parley.cli import app

runner = CliRunner()


@pytest.fixture
def cli(settings):
    root = str(settings.storage_root)

    def invoke(*args):
        return runner.invoke(app, ["--root", root, *args])

    return invoke


def register(cli, name):
    result = cli("--json", "register", name, f"{name} agent")
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)["id"]


def test_help_lists_commands(cli):
    result = cli("--help")
    assert result.exit_code == 0
    for command in ("agents", "register", "send", "inbox", "broadcast", "status", "call"):
        assert command in result.output


def test_register_and_list(cli):
    agent_id = register(cli, "Dev")

    result = cli("agents")
    assert result.exit_code == 0
    assert "Dev" in result.output
    assert agent_id[-8:] in result.output

    listed = json.loads(cli("--json", "agents").stdout)
    assert [a["id"] for a in listed] == [agent_id]


def test_send_and_inbox(cli):
    dev = register(cli, "Dev")
    test = register(cli, "Test")

    assert cli("send", dev, "review please", "--as", test).exit_code == 0

    result = cli("inbox", dev)
    assert "Test: review please" in result.output
    assert "No new messages" in cli("inbox", dev).output


def test_broadcast_reaches_others(cli):
    ruler = register(cli, "Ruler")
    other = register(cli, "Other")

    # Each invocation builds a fresh engine, so the gate starts in chaos.
    result = cli("broadcast", "hello all", "--as", other)
    assert result.exit_code == 0
    assert "Broadcast sent to 1 agent" in result.output
    assert "[BROADCAST NORMAL] hello all" in cli("inbox", ruler).output


def test_status_and_profile(cli):
    dev = register(cli, "Dev")

    assert "chaos mode" in cli("status").output
    assert "Status changed" in cli("status", dev, "--set", "coding").output

    profile = json.loads(cli("--json", "profile", dev).stdout)
    assert profile["status"] == "coding"


def test_unknown_agent_fails(cli):
    result = cli("inbox", "agent-ghost")
    assert result.exit_code == 1

    result = cli("unregister", "agent-ghost")
    assert result.exit_code == 1


def test_unregister(cli):
    dev = register(cli, "Dev")
    assert cli("unregister", dev).exit_code == 0
    assert json.loads(cli("--json", "agents").stdout) == []


def test_call_operation(cli):
    dev = register(cli, "Dev")
    args = json.dumps({"agent_id": dev, "status": "busy"})
    result = cli("--json", "call", "update-agent-status", "--args", args)

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["data"]["new_status"] == "busy"
    assert payload["meta"]["operation"] == "update-agent-status"


def test_call_rejects_bad_input(cli):
    assert cli("call", "launch-rockets").exit_code == 1
    assert cli("call", "discover-agents", "--args", "{nope").exit_code == 1
    assert cli("call", "discover-agents", "--args", "[1]").exit_code == 1
    assert cli("call", "register-agent", "--args", "{}").exit_code == 1
