"""The coordination engine: every collaborator constructed once and wired here."""

import hmac
import logging
from pathlib import Path
from typing import Any

from . import profiles
from .config import Settings, load_settings
from .directory import AgentDirectory
from .errors import NotFoundError, PermissionDeniedError
from .instances import InstanceTracker
from .lib.validate import require_id
from .mailbox import MailboxStore
from .models import Agent, Callback, Enforcement, Mode, Priority, PrivilegeLevel, ViolationType
from .notifications import NotificationBus
from .stick import SpeakingStick

logger = logging.getLogger(__name__)


class Engine:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.bus = NotificationBus(max_pending=settings.max_pending_notifications)
        self.directory = AgentDirectory(settings.agents_file, self.bus)
        self.stick = SpeakingStick(
            self.directory, self.bus, silence_threshold=settings.silence_threshold_seconds
        )
        self.mailbox = MailboxStore(
            settings.messages_db,
            self.bus,
            self.stick,
            self.directory,
            pressure_threshold=settings.queue_pressure_threshold,
        )
        self.instances = InstanceTracker(settings.instances_file)

    async def _require_agent(self, agent_id: str, field: str = "agent_id") -> Agent:
        agent_id = require_id(agent_id, field)
        agent = await self.directory.get(agent_id)
        if agent is None:
            raise NotFoundError(f"Agent not found: {agent_id}")
        return agent

    # Directory

    async def register_agent(
        self, name: str, description: str, instance_id: str | None = None
    ) -> dict[str, Any]:
        agent_id = await self.directory.register(name, description)
        if instance_id:
            await self.instances.track(instance_id, agent_id, name.strip())
        return {"id": agent_id, "name": name.strip(), "instance_id": instance_id}

    async def unregister_agent(self, agent_id: str) -> dict[str, Any]:
        result = await self.directory.unregister(agent_id)
        if result["success"]:
            await self.stick.forget(agent_id)
            self.bus.forget(agent_id)
            removed = self.mailbox.delete_for(agent_id)
            if removed:
                logger.debug(f"Dropped {removed} undelivered messages for {agent_id}")
        return result

    async def unregister_by_instance(self, instance_id: str) -> dict[str, Any]:
        mapping = await self.instances.get(instance_id)
        if mapping is None:
            raise NotFoundError(f"No agent registered for instance {instance_id}")
        result = await self.unregister_agent(mapping.agent_id)
        await self.instances.untrack(instance_id)
        return {
            **result,
            "agent_id": mapping.agent_id,
            "agent_name": mapping.agent_name,
            "instance_id": instance_id,
        }

    async def discover_agents(self) -> list[dict[str, Any]]:
        return await self.directory.discover()

    async def update_status(self, agent_id: str, status: str) -> dict[str, Any]:
        result = await self.directory.update_status(agent_id, status)
        if result["success"]:
            self.stick.touch(agent_id)
        return result

    async def agent_profile(self, agent_id: str) -> dict[str, Any]:
        agent = await self._require_agent(agent_id)
        return profiles.build_profile(agent)

    # Messaging

    async def send_message(self, sender_id: str, recipient_id: str, body: str) -> dict[str, Any]:
        await self._require_agent(sender_id, "from")
        await self._require_agent(recipient_id, "to")
        result = await self.mailbox.send(sender_id, recipient_id, body)
        await self.directory.record_message(sender_id, recipient_id)
        self.stick.touch(sender_id)
        return result

    async def check_messages(self, agent_id: str) -> list[dict[str, Any]]:
        """Return every queued message for the agent and remove them: each is delivered once."""
        agent = await self._require_agent(agent_id)
        names = {a.agent_id: a.name for a in await self.directory.all_agents()}
        # No await from here until the rows are gone.
        messages = self.mailbox.get_messages(agent.agent_id)

        delivered = []
        for message in messages:
            self.mailbox.delete_message(message.message_id)
            delivered.append(
                {
                    "id": message.message_id,
                    "from": message.sender_id,
                    "from_name": names.get(message.sender_id, message.sender_id),
                    "message": message.body,
                    "timestamp": message.created_at,
                }
            )
        await self.directory.touch_activity(agent.agent_id)
        self.stick.touch(agent.agent_id)
        return delivered

    async def send_broadcast(
        self, sender_id: str, body: str, priority: Priority | str = Priority.NORMAL
    ) -> dict[str, Any]:
        await self._require_agent(sender_id, "from")
        result = await self.mailbox.broadcast(sender_id, body, priority)
        if result["success"]:
            await self.directory.record_broadcast(sender_id)
        return result

    async def external_broadcast(
        self,
        api_key: str,
        body: str,
        priority: Priority | str = Priority.NORMAL,
        sender: str = "external",
    ) -> dict[str, Any]:
        expected = self.settings.external_api_key
        if not expected:
            raise PermissionDeniedError("External broadcast is disabled (no API key configured)")
        if not isinstance(api_key, str) or not hmac.compare_digest(
            api_key.encode(), expected.encode()
        ):
            logger.warning("Rejected external broadcast with invalid API key")
            raise PermissionDeniedError("Invalid API key")
        return await self.mailbox.inject(sender, body, priority)

    # Notifications

    async def subscribe(
        self, agent_id: str, events: list[str], callback: Callback | None = None
    ) -> dict[str, Any]:
        await self._require_agent(agent_id)
        return self.bus.subscribe(agent_id, events, callback)

    async def unsubscribe(self, agent_id: str, events: list[str] | None = None) -> dict[str, Any]:
        await self._require_agent(agent_id)
        return self.bus.unsubscribe(agent_id, events)

    async def pending_notifications(self, agent_id: str) -> list[dict[str, Any]]:
        await self._require_agent(agent_id)
        return [n.to_dict() for n in self.bus.drain_pending(agent_id)]

    # Speaking stick

    async def set_mode(
        self,
        mode: Mode | str,
        initiated_by: str,
        enforcement: Enforcement | str = Enforcement.SUGGESTION,
    ) -> dict[str, Any]:
        await self._require_agent(initiated_by, "initiated_by")
        return await self.stick.set_mode(mode, initiated_by, enforcement)

    async def grant(
        self,
        granter: str,
        target: str,
        topic: str = "",
        privilege_level: PrivilegeLevel | str = PrivilegeLevel.STANDARD,
    ) -> dict[str, Any]:
        return await self.stick.grant_to(granter, target, topic, privilege_level)

    async def request_stick(self, agent_id: str, topic: str = "", urgent: bool = False):
        await self._require_agent(agent_id)
        return await self.stick.request(agent_id, topic, urgent)

    async def release(
        self, agent_id: str, summary: str = "", pass_to: str | None = None
    ) -> dict[str, Any]:
        return await self.stick.release(agent_id, summary, pass_to)

    async def track_violation(
        self,
        agent_id: str,
        violation_type: ViolationType | str = ViolationType.OTHER,
        context: str = "",
    ) -> dict[str, Any]:
        return await self.stick.track_violation(agent_id, violation_type, context)

    async def nudge(self) -> dict[str, Any]:
        return await self.stick.nudge_silent()

    async def stick_status(self) -> dict[str, Any]:
        return await self.stick.status()

    async def force_reset(self, initiated_by: str = "system") -> dict[str, Any]:
        return await self.stick.force_reset(initiated_by)

    def close(self) -> None:
        self.mailbox.close()


def create_engine(root: Path | str | None = None, **overrides) -> Engine:
    return Engine(load_settings(root, **overrides))
