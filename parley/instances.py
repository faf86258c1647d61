"""Maps external process handles (instances) to the agents they registered."""

import asyncio
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from .lib import clock
from .lib.documents import JsonDocument
from .lib.locks import FifoLock
from .lib.validate import optional_text, require_id
from .models import InstanceMapping

logger = logging.getLogger(__name__)


class InstanceTracker:
    def __init__(self, path: Path):
        self.document = JsonDocument(path)
        self._lock = FifoLock()

    async def _load(self) -> dict[str, dict]:
        return await asyncio.to_thread(self.document.read)

    async def _save(self, mappings: dict[str, dict]) -> None:
        await asyncio.to_thread(self.document.write, mappings)

    async def track(self, instance_id: str, agent_id: str, agent_name: str = "") -> dict[str, Any]:
        instance_id = require_id(instance_id, "instance_id")
        agent_id = require_id(agent_id)
        agent_name = optional_text(agent_name, "agent_name", 100)

        async with self._lock:
            mappings = await self._load()
            mapping = InstanceMapping(
                instance_id=instance_id,
                agent_id=agent_id,
                agent_name=agent_name,
                registered_at=clock.iso(),
            )
            mappings[instance_id] = vars(mapping)
            await self._save(mappings)
        return {"success": True, "instance_id": instance_id, "agent_id": agent_id}

    async def untrack(self, instance_id: str) -> dict[str, Any]:
        instance_id = require_id(instance_id, "instance_id")

        async with self._lock:
            mappings = await self._load()
            mapping = mappings.pop(instance_id, None)
            if mapping is None:
                return {"success": False, "message": "Instance not found"}
            await self._save(mappings)
        return {
            "success": True,
            "agent_id": mapping.get("agent_id"),
            "agent_name": mapping.get("agent_name", ""),
        }

    async def get(self, instance_id: str) -> InstanceMapping | None:
        instance_id = require_id(instance_id, "instance_id")
        data = (await self._load()).get(instance_id)
        if not data:
            return None
        return InstanceMapping(**data)

    async def all(self) -> list[InstanceMapping]:
        return [InstanceMapping(**data) for data in (await self._load()).values()]

    async def clear_stale(
        self, max_age_hours: float = 24, now: datetime | None = None
    ) -> dict[str, Any]:
        cutoff = (now or clock.now()) - timedelta(hours=max_age_hours)

        async with self._lock:
            mappings = await self._load()
            stale = []
            for instance_id, data in list(mappings.items()):
                registered = clock.parse(data.get("registered_at"))
                if registered is None or registered < cutoff:
                    stale.append(mappings.pop(instance_id))
            if stale:
                await self._save(mappings)

        if stale:
            logger.info(f"Cleared {len(stale)} stale instance mappings")
        return {"cleared": len(stale), "instances": stale}
