from datetime import timedelta

import pytest

from parley.errors import ValidationError
from parley.instances import InstanceTracker
from parley.lib import clock


@pytest.fixture
def tracker(tmp_path):
    return InstanceTracker(tmp_path / "instances.json")


@pytest.mark.asyncio
async def test_track_get_untrack(tracker):
    await tracker.track("proc-1", "agent-1", "Dev")

    mapping = await tracker.get("proc-1")
    assert (mapping.agent_id, mapping.agent_name) == ("agent-1", "Dev")
    assert [m.instance_id for m in await tracker.all()] == ["proc-1"]

    assert await tracker.untrack("proc-1") == {
        "success": True,
        "agent_id": "agent-1",
        "agent_name": "Dev",
    }
    assert (await tracker.untrack("proc-1"))["success"] is False
    assert await tracker.get("proc-1") is None


@pytest.mark.asyncio
async def test_missing_ids_rejected(tracker):
    with pytest.raises(ValidationError):
        await tracker.track("", "agent-1")
    with pytest.raises(ValidationError):
        await tracker.track("proc-1", "")
    with pytest.raises(ValidationError):
        await tracker.untrack(" ")


@pytest.mark.asyncio
async def test_clear_stale(tracker):
    await tracker.track("old", "agent-1")
    await tracker.track("new", "agent-2")

    result = await tracker.clear_stale(max_age_hours=1, now=clock.now() + timedelta(hours=2))
    assert result["cleared"] == 2

    await tracker.track("fresh", "agent-3")
    assert (await tracker.clear_stale())["cleared"] == 0
    assert [m.instance_id for m in await tracker.all()] == ["fresh"]
