"""Agent directory: one JSON document, mutated under a FIFO lock."""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .lib import clock, ids
from .lib.documents import JsonDocument
from .lib.locks import FifoLock
from .lib.validate import require_id, require_text
from .models import Agent, Event, Relationship
from .notifications import NotificationBus

logger = logging.getLogger(__name__)

MAX_NAME = 100
MAX_DESCRIPTION = 500
MAX_STATUS = 100


class AgentDirectory:
    def __init__(self, path: Path, bus: NotificationBus | None = None):
        self.document = JsonDocument(path)
        self.bus = bus
        self._lock = FifoLock()

    async def _load(self) -> dict[str, Agent]:
        raw = await asyncio.to_thread(self.document.read)
        agents = {}
        for agent_id, data in raw.items():
            try:
                agents[agent_id] = Agent.from_dict(data)
            except (KeyError, TypeError) as e:
                logger.warning(f"Skipping malformed agent record {agent_id}: {e}")
        return agents

    async def _save(self, agents: dict[str, Agent]) -> None:
        data = {agent_id: agent.to_dict() for agent_id, agent in agents.items()}
        await asyncio.to_thread(self.document.write, data)

    async def _mutate(self, change: Callable[[dict[str, Agent]], Any]) -> Any:
        """Run change(agents) as one read-modify-write cycle.

        change returns (result, dirty); the document is only rewritten when dirty.
        """
        async with self._lock:
            agents = await self._load()
            result, dirty = change(agents)
            if dirty:
                await self._save(agents)
            return result

    async def _publish(self, event: Event, params: dict[str, Any]) -> None:
        if self.bus is not None:
            await self.bus.publish(event, params)

    async def register(self, name: str, description: str) -> str:
        name = require_text(name, "Agent name", MAX_NAME)
        description = require_text(description, "Agent description", MAX_DESCRIPTION)

        def change(agents):
            agent_id = ids.agent_id()
            while agent_id in agents:
                agent_id = ids.agent_id()
            stamp = clock.iso()
            agents[agent_id] = Agent(
                agent_id=agent_id,
                name=name,
                description=description,
                registered_at=stamp,
                last_activity_at=stamp,
            )
            return agent_id, True

        agent_id = await self._mutate(change)
        logger.info(f"Registered {name} ({ids.short_id(agent_id)})")
        await self._publish(
            Event.AGENT_REGISTERED,
            {"agent_id": agent_id, "name": name, "description": description, "capabilities": []},
        )
        return agent_id

    async def unregister(self, agent_id: str) -> dict[str, Any]:
        agent_id = require_id(agent_id)

        def change(agents):
            removed = agents.pop(agent_id, None)
            return removed, removed is not None

        removed = await self._mutate(change)
        if removed is None:
            return {"success": False}

        logger.info(f"Unregistered {removed.name} ({ids.short_id(agent_id)})")
        await self._publish(Event.AGENT_UNREGISTERED, {"agent_id": agent_id})
        return {"success": True}

    async def update_status(self, agent_id: str, status: str) -> dict[str, Any]:
        agent_id = require_id(agent_id)
        status = require_text(status, "Status", MAX_STATUS)

        def change(agents):
            agent = agents.get(agent_id)
            if agent is None:
                return None, False
            previous = agent.status
            agent.status = status
            agent.last_activity_at = clock.iso()
            return (previous, agent.name), True

        outcome = await self._mutate(change)
        if outcome is None:
            return {"success": False, "message": "Agent not found"}

        previous, agent_name = outcome
        if previous != status:
            await self._publish(
                Event.AGENT_STATUS_CHANGED,
                {
                    "agent_id": agent_id,
                    "status": status,
                    "previous_status": previous,
                    "agent_name": agent_name,
                },
            )
        return {"success": True, "previous_status": previous, "new_status": status}

    async def touch_activity(self, agent_id: str) -> dict[str, Any]:
        agent_id = require_id(agent_id)

        def change(agents):
            agent = agents.get(agent_id)
            if agent is None:
                return False, False
            agent.last_activity_at = clock.iso()
            return True, True

        return {"success": await self._mutate(change)}

    async def record_message(self, sender_id: str, recipient_id: str) -> None:
        """Count a direct message in both agents' statistics."""

        def change(agents):
            stamp = clock.iso()
            sender = agents.get(sender_id)
            recipient = agents.get(recipient_id)
            if sender is not None:
                sender.stats.messages_sent += 1
                sender.stats.last_message_at = stamp
                sender.last_activity_at = stamp
                rel = sender.relationships.setdefault(recipient_id, Relationship())
                rel.message_count += 1
                rel.last_contact = stamp
            if recipient is not None:
                recipient.stats.messages_received += 1
            return None, sender is not None or recipient is not None

        await self._mutate(change)

    async def record_broadcast(self, sender_id: str) -> None:
        def change(agents):
            sender = agents.get(sender_id)
            if sender is None:
                return None, False
            stamp = clock.iso()
            sender.stats.broadcasts_sent += 1
            sender.stats.last_message_at = stamp
            sender.last_activity_at = stamp
            return None, True

        await self._mutate(change)

    async def get(self, agent_id: str) -> Agent | None:
        agents = await self._load()
        return agents.get(agent_id)

    async def exists(self, agent_id: str) -> bool:
        return await self.get(agent_id) is not None

    async def all_agents(self) -> list[Agent]:
        return list((await self._load()).values())

    async def discover(self) -> list[dict[str, Any]]:
        return [agent.summary() for agent in await self.all_agents()]

    async def list_by_status(self, status: str) -> list[dict[str, Any]]:
        return [agent.summary() for agent in await self.all_agents() if agent.status == status]
