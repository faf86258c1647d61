"""Agent profiles derived from directory records and usage statistics."""

from datetime import datetime
from typing import Any

from .lib import clock
from .models import Agent

CAPABILITY_KEYWORDS = {
    "development": ("develop", "code", "coding", "implement", "engineer", "program"),
    "testing": ("test", "qa", "quality", "verify"),
    "review": ("review", "audit"),
    "documentation": ("document", "docs", "writing", "writer"),
    "research": ("research", "analy", "investigat"),
    "design": ("design", "architect", "ux", "ui "),
    "operations": ("deploy", "devops", "operations", "infra", "monitor"),
    "coordination": ("coordinat", "manag", "lead", "plan"),
}


def detect_capabilities(description: str) -> list[str]:
    text = f" {description.lower()} "
    return [
        capability
        for capability, keywords in CAPABILITY_KEYWORDS.items()
        if any(keyword in text for keyword in keywords)
    ]


def frequency(count: int) -> str:
    if count >= 10:
        return "frequent"
    if count >= 2:
        return "occasional"
    return "rare"


def format_uptime(seconds: float) -> str:
    minutes = max(int(seconds // 60), 0)
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h"
    return f"{hours // 24}d"


def build_profile(agent: Agent, now: datetime | None = None) -> dict[str, Any]:
    now = now or clock.now()
    registered = clock.parse(agent.registered_at)
    uptime = format_uptime((now - registered).total_seconds()) if registered else "0m"

    relationships = sorted(
        (
            {
                "agent_id": peer,
                "message_count": rel.message_count,
                "last_contact": rel.last_contact,
                "frequency": frequency(rel.message_count),
            }
            for peer, rel in agent.relationships.items()
        ),
        key=lambda r: r["message_count"],
        reverse=True,
    )

    return {
        "id": agent.agent_id,
        "name": agent.name,
        "description": agent.description,
        "status": agent.status,
        "registered_at": agent.registered_at,
        "last_activity_at": agent.last_activity_at,
        "capabilities": detect_capabilities(agent.description),
        "statistics": {
            "messages_sent": agent.stats.messages_sent,
            "messages_received": agent.stats.messages_received,
            "broadcasts_sent": agent.stats.broadcasts_sent,
            "last_message_at": agent.stats.last_message_at,
            "uptime": uptime,
        },
        "relationships": relationships,
    }
