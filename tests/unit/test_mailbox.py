import pytest

from parley.directory import AgentDirectory
from parley.errors import ValidationError
from parley.mailbox import MailboxStore
from parley.notifications import NotificationBus
from parley.stick import SpeakingStick


@pytest.fixture
def bus():
    return NotificationBus()


@pytest.fixture
def directory(tmp_path, bus):
    return AgentDirectory(tmp_path / "agents.json", bus)


@pytest.fixture
def stick(directory, bus):
    return SpeakingStick(directory, bus)


@pytest.fixture
def mailbox(tmp_path, bus, stick, directory):
    store = MailboxStore(tmp_path / "messages.db", bus, stick, directory, pressure_threshold=3)
    yield store
    store.close()


@pytest.mark.asyncio
async def test_send_and_read_is_non_destructive(mailbox, bus):
    bus.subscribe("watcher", ["message/delivered"])
    result = await mailbox.send("a", "b", "  hello ")

    assert result["success"] is True
    assert result["message_id"].startswith("msg-")
    [msg] = mailbox.get_messages("b")
    assert (msg.sender_id, msg.body, msg.read) == ("a", "hello", False)
    assert len(mailbox.get_messages("b")) == 1
    assert mailbox.get_messages("a") == []
    [event] = bus.drain_pending("watcher")
    assert event.params["to"] == "b" and event.params["from"] == "a"


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["", "   ", "x" * 10001, None])
async def test_body_validation(mailbox, body):
    with pytest.raises(ValidationError):
        await mailbox.send("a", "b", body)
    assert mailbox.pending_count("b") == 0


@pytest.mark.asyncio
async def test_ordering_limit_and_unread(mailbox, bus):
    for n in range(4):
        await mailbox.send("a", "b", f"m{n}")

    assert [m.body for m in mailbox.get_messages("b", limit=2)] == ["m0", "m1"]

    first = mailbox.get_messages("b")[0]
    bus.subscribe("watcher", ["message/acknowledged"])
    assert await mailbox.mark_read(first.message_id) is True
    assert await mailbox.mark_read("msg-missing") is False
    assert [m.body for m in mailbox.get_messages("b", unread_only=True)] == ["m1", "m2", "m3"]
    assert len(bus.drain_pending("watcher")) == 1


@pytest.mark.asyncio
async def test_delete(mailbox):
    sent = await mailbox.send("a", "b", "bye")
    assert mailbox.delete_message(sent["message_id"]) is True
    assert mailbox.delete_message(sent["message_id"]) is False
    assert mailbox.get_messages("b") == []


@pytest.mark.asyncio
async def test_queue_pressure_event(mailbox, bus):
    bus.subscribe("watcher", ["queue/status"])
    for n in range(4):
        await mailbox.send("a", "b", f"m{n}")

    events = bus.drain_pending("watcher")
    assert [e.params["pending_messages"] for e in events] == [3, 4]
    assert events[0].params["queue_size"] == 3
    assert events[0].params["utilization"] == 1.0


@pytest.mark.asyncio
async def test_broadcast_fans_out_excluding_sender(mailbox, directory, bus):
    a, b, c = [await directory.register(n, "x") for n in ("A", "B", "C")]
    bus.subscribe("watcher", ["broadcast/*", "message/*"])

    result = await mailbox.broadcast(a, "standup", "high")

    assert result["success"] is True
    assert result["recipient_count"] == 2
    assert mailbox.get_messages(a) == []
    for agent_id in (b, c):
        [msg] = mailbox.get_messages(agent_id)
        assert msg.body == "[BROADCAST HIGH] standup"
    methods = [n.method for n in bus.drain_pending("watcher")]
    assert methods.count("message/delivered") == 2
    assert methods.count("broadcast/message") == 1


@pytest.mark.asyncio
async def test_denied_broadcast_writes_nothing(mailbox, directory, stick):
    ruler, x, y = [await directory.register(n, "x") for n in ("R", "X", "Y")]
    await stick.set_mode("speaking-stick", ruler)

    result = await mailbox.broadcast(x, "hi")

    assert result["success"] is False
    assert result["recipient_count"] == 0
    assert result["violation_tracked"] is True
    assert result["total_violations"] == 1
    assert result["tier"] == "mild"
    assert result["current_holder"] == ruler
    assert result["ruler"] == ruler
    assert all(mailbox.get_messages(agent) == [] for agent in (ruler, x, y))
    assert stick.violations(x) == 1


@pytest.mark.asyncio
async def test_broadcast_priority_validated(mailbox, directory):
    a = await directory.register("A", "x")
    with pytest.raises(ValidationError):
        await mailbox.broadcast(a, "hi", "urgent")


@pytest.mark.asyncio
async def test_inject_reaches_everyone_and_bypasses_gate(mailbox, directory, stick):
    ruler, b = [await directory.register(n, "x") for n in ("R", "B")]
    await stick.set_mode("speaking-stick", ruler)

    result = await mailbox.inject("ci", "deploy at 5", "low")

    assert result["recipient_count"] == 2
    [msg] = mailbox.get_messages(b)
    assert msg.body == "[EXTERNAL BROADCAST LOW from ci] deploy at 5"
    assert stick.violations("external") == 0
