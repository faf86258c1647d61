import asyncio
import json

import pytest

from parley.directory import AgentDirectory
from parley.errors import ValidationError
from parley.notifications import NotificationBus


@pytest.fixture
def bus():
    return NotificationBus()


@pytest.fixture
def directory(tmp_path, bus):
    return AgentDirectory(tmp_path / "agents.json", bus)


@pytest.mark.asyncio
async def test_register_persists_and_publishes(directory, bus, tmp_path):
    bus.subscribe("watcher", ["agent/*"])
    agent_id = await directory.register("  Dev ", "Writes code")

    agent = await directory.get(agent_id)
    assert agent.name == "Dev"
    assert agent.status == "just joined"
    assert agent.registered_at == agent.last_activity_at

    stored = json.loads((tmp_path / "agents.json").read_text())
    assert stored[agent_id]["name"] == "Dev"

    [event] = bus.drain_pending("watcher")
    assert event.method == "agent/registered"
    assert event.params["agent_id"] == agent_id


@pytest.mark.asyncio
async def test_concurrent_registrations_never_lose_updates(directory):
    ids = await asyncio.gather(*(directory.register(f"a{n}", "worker") for n in range(25)))

    assert len(set(ids)) == 25
    assert {a["id"] for a in await directory.discover()} == set(ids)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "name, description",
    [("", "desc"), ("   ", "desc"), ("Dev", ""), ("x" * 101, "desc"), ("Dev", "d" * 501), (None, "d")],
)
async def test_register_validation(directory, tmp_path, name, description):
    with pytest.raises(ValidationError):
        await directory.register(name, description)
    assert not (tmp_path / "agents.json").exists()


@pytest.mark.asyncio
async def test_unregister(directory, bus):
    agent_id = await directory.register("Dev", "Writes code")
    bus.subscribe("watcher", ["agent/unregistered"])

    assert await directory.unregister(agent_id) == {"success": True}
    assert await directory.unregister(agent_id) == {"success": False}
    assert len(bus.drain_pending("watcher")) == 1
    assert await directory.get(agent_id) is None


@pytest.mark.asyncio
async def test_status_change_event_only_on_change(directory, bus):
    agent_id = await directory.register("Dev", "Writes code")
    bus.subscribe("watcher", ["agent/statusChanged"])

    first = await directory.update_status(agent_id, "busy")
    second = await directory.update_status(agent_id, "busy")

    assert first == {"success": True, "previous_status": "just joined", "new_status": "busy"}
    assert second["previous_status"] == "busy"
    [event] = bus.drain_pending("watcher")
    assert event.params["previous_status"] == "just joined"
    assert event.params["agent_name"] == "Dev"


@pytest.mark.asyncio
async def test_status_refreshes_activity(directory):
    agent_id = await directory.register("Dev", "Writes code")
    before = (await directory.get(agent_id)).last_activity_at
    await asyncio.sleep(0.01)
    await directory.update_status(agent_id, "busy")
    assert (await directory.get(agent_id)).last_activity_at > before


@pytest.mark.asyncio
async def test_status_validation_and_unknown(directory):
    agent_id = await directory.register("Dev", "Writes code")
    with pytest.raises(ValidationError):
        await directory.update_status(agent_id, "s" * 101)
    with pytest.raises(ValidationError):
        await directory.update_status(agent_id, " ")

    assert (await directory.update_status("agent-missing", "busy"))["success"] is False
    assert await directory.touch_activity("agent-missing") == {"success": False}


@pytest.mark.asyncio
async def test_list_by_status(directory):
    a = await directory.register("A", "one")
    await directory.register("B", "two")
    await directory.update_status(a, "reviewing")

    assert [s["id"] for s in await directory.list_by_status("reviewing")] == [a]


@pytest.mark.asyncio
async def test_usage_statistics(directory):
    a = await directory.register("A", "one")
    b = await directory.register("B", "two")
    await directory.record_message(a, b)
    await directory.record_message(a, b)
    await directory.record_broadcast(a)

    sender = await directory.get(a)
    recipient = await directory.get(b)
    assert sender.stats.messages_sent == 2
    assert sender.stats.broadcasts_sent == 1
    assert sender.relationships[b].message_count == 2
    assert recipient.stats.messages_received == 2
    assert recipient.stats.messages_sent == 0


@pytest.mark.asyncio
async def test_corrupt_document_starts_empty(tmp_path, bus):
    (tmp_path / "agents.json").write_text("garbage")
    directory = AgentDirectory(tmp_path / "agents.json", bus)
    assert await directory.discover() == []
    agent_id = await directory.register("Dev", "Writes code")
    assert [a["id"] for a in await directory.discover()] == [agent_id]
