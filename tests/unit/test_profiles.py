from datetime import timedelta

from parley.lib import clock
from parley.models import Agent, AgentStats, Relationship
from parley.profiles import build_profile, detect_capabilities, format_uptime, frequency


def test_frequency_buckets():
    assert [frequency(n) for n in (1, 2, 9, 10, 40)] == [
        "rare",
        "occasional",
        "occasional",
        "frequent",
        "frequent",
    ]


def test_uptime_format():
    assert format_uptime(30) == "0m"
    assert format_uptime(45 * 60) == "45m"
    assert format_uptime(3 * 3600) == "3h"
    assert format_uptime(50 * 3600) == "2d"


def test_capabilities_from_description():
    assert detect_capabilities("Develops and tests the billing code") == ["development", "testing"]
    assert detect_capabilities("Just vibes") == []


def test_build_profile():
    now = clock.now()
    agent = Agent(
        agent_id="agent-1",
        name="Dev",
        description="Code review bot",
        registered_at=clock.iso(now - timedelta(hours=5)),
        stats=AgentStats(messages_sent=12, messages_received=3, broadcasts_sent=1),
        relationships={
            "agent-2": Relationship(message_count=1),
            "agent-3": Relationship(message_count=11),
        },
    )

    profile = build_profile(agent, now)

    assert profile["statistics"]["uptime"] == "5h"
    assert profile["statistics"]["messages_sent"] == 12
    assert "review" in profile["capabilities"]
    assert [r["agent_id"] for r in profile["relationships"]] == ["agent-3", "agent-2"]
    assert [r["frequency"] for r in profile["relationships"]] == ["frequent", "rare"]
