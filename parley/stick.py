"""The speaking stick: who may broadcast, and what happens to those who do anyway.

Two modes. In chaos anyone may broadcast. In speaking-stick mode the agent
that switched the mode on becomes the ruler; only the ruler grants the stick,
and only the current holder may broadcast. Releasing always hands control back
to the ruler. The queue is a raised-hand list the ruler consults; it never
grants by itself.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from .directory import AgentDirectory
from .lib import clock
from .lib.validate import optional_text, require_choice, require_id
from .models import (
    Enforcement,
    Event,
    Mode,
    Priority,
    PrivilegeLevel,
    StickState,
    ViolationTier,
    ViolationType,
)
from .notifications import NotificationBus

logger = logging.getLogger(__name__)

DEFAULT_SILENCE_THRESHOLD = 300

MODERATE_AT = 3
SHAME_AT = 6

PRIVILEGES = {
    PrivilegeLevel.STANDARD: {
        "privileges": ["exclusive-communication"],
        "prompt": "You have the speaking stick. You may speak freely while others listen.",
    },
    PrivilegeLevel.EXPERT: {
        "privileges": ["exclusive-communication", "technical-expertise"],
        "prompt": (
            "You have the speaking stick as the designated technical expert. "
            "Provide detailed analysis and share your expertise freely."
        ),
    },
    PrivilegeLevel.DEEP_ANALYSIS: {
        "privileges": ["exclusive-communication", "deep-analysis", "extended-time"],
        "prompt": (
            "You have the speaking stick with deep analysis privileges. Take your time "
            "to elaborate on complex topics and provide comprehensive insights."
        ),
    },
    PrivilegeLevel.LEADERSHIP: {
        "privileges": ["exclusive-communication", "conversation-guidance", "topic-control"],
        "prompt": (
            "You have the speaking stick as the conversation leader. Guide the discussion, "
            "ask probing questions, and steer the conversation as needed."
        ),
    },
}

CONSEQUENCES = {
    ViolationTier.MILD: {
        "prompt": "Please be mindful of the speaking stick protocol.",
        "social_pressure": "mild",
        "queue_penalty": False,
        "timeout": False,
    },
    ViolationTier.MODERATE: {
        "prompt": "You tend to be chatty - please listen more when others have the speaking stick.",
        "social_pressure": "mild",
        "queue_penalty": True,
        "timeout": False,
    },
    ViolationTier.SHAME: {
        "prompt": (
            "You are known for ignoring conversation rules - "
            "prove you can follow speaking stick protocol."
        ),
        "social_pressure": "shame",
        "queue_penalty": True,
        "timeout": True,
    },
}


def tier_for(count: int) -> ViolationTier:
    if count >= SHAME_AT:
        return ViolationTier.SHAME
    if count >= MODERATE_AT:
        return ViolationTier.MODERATE
    return ViolationTier.MILD


def consequence_text(count: int) -> str:
    tier = tier_for(count)
    if tier is ViolationTier.SHAME:
        return f"CHATTERBOX HALL OF SHAME! {CONSEQUENCES[tier]['prompt']}"
    if tier is ViolationTier.MODERATE:
        return f"Added to chatterbox list. {CONSEQUENCES[tier]['prompt']}"
    return f"Violation #{count} recorded"


class SpeakingStick:
    def __init__(
        self,
        directory: AgentDirectory,
        bus: NotificationBus,
        silence_threshold: int = DEFAULT_SILENCE_THRESHOLD,
    ):
        self.directory = directory
        self.bus = bus
        self.silence_threshold = silence_threshold
        self.state = StickState()

    @property
    def mode(self) -> Mode:
        return self.state.mode

    @property
    def ruler(self) -> str | None:
        return self.state.ruler

    @property
    def holder(self) -> str | None:
        return self.state.holder

    def violations(self, agent_id: str) -> int:
        return self.state.violations.get(agent_id, 0)

    def touch(self, agent_id: str) -> None:
        self.state.last_activity[agent_id] = clock.now()

    def may_broadcast(self, agent_id: str) -> bool:
        if self.state.mode is Mode.CHAOS:
            return True
        return agent_id == self.state.holder

    async def _name(self, agent_id: str | None) -> str | None:
        if agent_id is None:
            return None
        agent = await self.directory.get(agent_id)
        return agent.name if agent else None

    def _dequeue(self, agent_id: str) -> None:
        self.state.queue = [e for e in self.state.queue if e["agent_id"] != agent_id]

    async def set_mode(
        self,
        mode: Mode | str,
        initiated_by: str,
        enforcement: Enforcement | str = Enforcement.SUGGESTION,
    ) -> dict[str, Any]:
        mode = require_choice(mode, "mode", Mode)
        enforcement = require_choice(enforcement, "enforcement_level", Enforcement)
        initiated_by = require_id(initiated_by, "initiated_by")
        state = self.state
        previous = state.mode

        if (
            previous is Mode.SPEAKING_STICK
            and mode is Mode.SPEAKING_STICK
            and initiated_by != state.ruler
        ):
            return {
                "changed": False,
                "error": "not_ruler",
                "previous_mode": previous.value,
                "new_mode": previous.value,
                "ruler": state.ruler,
            }

        state.mode = mode
        state.enforcement = enforcement
        if mode is Mode.SPEAKING_STICK:
            if previous is not Mode.SPEAKING_STICK:
                state.ruler = initiated_by
                state.holder = initiated_by
                state.queue = []
                state.topic = ""
                state.privilege_level = PrivilegeLevel.STANDARD
                state.granted_at = clock.iso()
        else:
            state.ruler = None
            state.holder = None
            state.queue = []
            state.topic = ""
            state.granted_at = None
        self.touch(initiated_by)

        agents = await self.directory.all_agents()
        logger.info(f"Mode {previous.value} -> {mode.value} by {initiated_by} ({enforcement.value})")
        await self.bus.publish(
            Event.STICK_MODE_CHANGED,
            {
                "previous_mode": previous.value,
                "new_mode": mode.value,
                "enforcement_level": enforcement.value,
                "initiated_by": initiated_by,
                "ruler": state.ruler,
            },
        )
        await self.bus.system_broadcast(
            f"[MODE CHANGE] Communication mode changed from {previous.value} to {mode.value} "
            f"(enforcement: {enforcement.value})"
        )
        return {
            "changed": True,
            "previous_mode": previous.value,
            "new_mode": mode.value,
            "ruler": state.ruler,
            "current_holder": state.holder,
            "enforcement_active": enforcement is not Enforcement.SUGGESTION,
            "agents_notified": [a.agent_id for a in agents],
        }

    async def grant_to(
        self,
        granter: str,
        target: str,
        topic: str = "",
        privilege_level: PrivilegeLevel | str = PrivilegeLevel.STANDARD,
    ) -> dict[str, Any]:
        granter = require_id(granter, "granter")
        target = require_id(target, "target")
        topic = optional_text(topic, "topic", 500)
        level = require_choice(privilege_level, "privilege_level", PrivilegeLevel)
        state = self.state

        if state.mode is not Mode.SPEAKING_STICK or granter != state.ruler:
            return {"granted": False, "error": "not_ruler", "ruler": state.ruler}
        target_agent = await self.directory.get(target)
        if target_agent is None:
            return {"granted": False, "error": "unknown_agent", "target": target}

        return await self._hand_to(target, target_agent.name, granter, topic, level)

    async def _hand_to(
        self, target: str, target_name: str, granter: str, topic: str, level: PrivilegeLevel
    ) -> dict[str, Any]:
        state = self.state
        previous = state.holder
        state.holder = target
        state.topic = topic
        state.privilege_level = level
        state.granted_at = clock.iso()
        self._dequeue(target)
        self.touch(granter)
        self.touch(target)

        definition = PRIVILEGES[level]
        logger.info(f"Stick granted to {target_name} by {granter}")
        await self.bus.publish(
            Event.STICK_GRANTED,
            {
                "holder": target,
                "holder_name": target_name,
                "granted_by": granter,
                "previous_holder": previous,
                "topic": topic,
                "privilege_level": level.value,
                "privileges": list(definition["privileges"]),
            },
        )
        return {
            "granted": True,
            "current_holder": target,
            "current_holder_name": target_name,
            "previous_holder": previous,
            "topic": topic,
            "privilege_level": level.value,
            "privileges_granted": list(definition["privileges"]),
            "enhanced_prompt": definition["prompt"],
        }

    async def release(
        self, agent_id: str, summary: str = "", pass_to: str | None = None
    ) -> dict[str, Any]:
        agent_id = require_id(agent_id)
        summary = optional_text(summary, "summary", 10000)
        state = self.state

        if state.mode is not Mode.SPEAKING_STICK or agent_id != state.holder:
            return {"released": False, "error": "not_holder", "current_holder": state.holder}

        self.touch(agent_id)
        if agent_id == state.ruler and pass_to and pass_to != agent_id:
            target_agent = await self.directory.get(pass_to)
            if target_agent is None:
                return {"released": False, "error": "unknown_agent", "target": pass_to}
            result = await self._hand_to(
                pass_to, target_agent.name, agent_id, state.topic, PrivilegeLevel.STANDARD
            )
            return {
                "released": True,
                "next_holder": pass_to,
                "next_holder_name": target_agent.name,
                "summary": summary,
                "suggested_next": None,
                "privileges_granted": result["privileges_granted"],
            }

        suggested = pass_to if pass_to and agent_id != state.ruler else None
        state.holder = state.ruler
        state.topic = ""
        state.privilege_level = PrivilegeLevel.STANDARD
        state.granted_at = clock.iso()

        await self.bus.publish(
            Event.STICK_RELEASED,
            {
                "released_by": agent_id,
                "returned_to": state.ruler,
                "summary": summary,
                "suggested_next": suggested,
            },
        )
        return {
            "released": True,
            "next_holder": state.holder,
            "next_holder_name": await self._name(state.holder),
            "summary": summary,
            "suggested_next": suggested,
        }

    async def request(self, agent_id: str, topic: str = "", urgent: bool = False) -> dict[str, Any]:
        """Raise a hand. The ruler sees the queue; only a grant hands over the stick."""
        agent_id = require_id(agent_id)
        topic = optional_text(topic, "topic", 500)
        state = self.state

        if state.mode is not Mode.SPEAKING_STICK:
            return {"queued": False, "error": "not_in_speaking_stick_mode"}
        agent = await self.directory.get(agent_id)
        if agent is None:
            return {"queued": False, "error": "unknown_agent"}

        self.touch(agent_id)
        count = self.violations(agent_id)
        consequence = CONSEQUENCES[tier_for(count)]
        if consequence["timeout"]:
            return {"queued": False, "error": "timed_out", "violation_count": count}
        if agent_id == state.holder:
            return {"queued": False, "error": "already_holder"}

        self._dequeue(agent_id)
        entry = {"agent_id": agent_id, "topic": topic, "urgent": urgent, "requested_at": clock.iso()}
        if urgent and not consequence["queue_penalty"]:
            state.queue.insert(0, entry)
        else:
            entry["urgent"] = False
            state.queue.append(entry)

        return {
            "queued": True,
            "queue_position": state.queued_ids().index(agent_id) + 1,
            "queue_length": len(state.queue),
            "ruler": state.ruler,
            "current_holder": state.holder,
            "current_holder_name": await self._name(state.holder),
            "violation_count": count,
            "urgent_honored": entry["urgent"],
        }

    async def track_violation(
        self,
        agent_id: str,
        violation_type: ViolationType | str = ViolationType.SPOKE_WITHOUT_STICK,
        context: str = "",
    ) -> dict[str, Any]:
        agent_id = require_id(agent_id)
        violation_type = require_choice(violation_type, "violation_type", ViolationType)
        context = optional_text(context, "context", 10000)

        total = self.state.violations.get(agent_id, 0) + 1
        self.state.violations[agent_id] = total
        tier = tier_for(total)
        applied = consequence_text(total)
        logger.info(f"Violation #{total} ({violation_type.value}) by {agent_id}: {tier.value}")

        if self.state.enforcement is Enforcement.SOCIAL_PRESSURE:
            await self.bus.system_broadcast(
                f"[VIOLATION] {agent_id} violated speaking rules ({violation_type.value}). "
                f"Total violations: {total}. {applied}",
                Priority.HIGH if tier is ViolationTier.SHAME else Priority.NORMAL,
                violator=agent_id,
                violation_type=violation_type.value,
                total_violations=total,
                context=context,
            )

        return {
            "agent_id": agent_id,
            "violation_type": violation_type.value,
            "total_violations": total,
            "tier": tier.value,
            "consequence_applied": applied,
            "social_pressure_level": CONSEQUENCES[tier]["social_pressure"],
            "prompt_modified": tier is not ViolationTier.MILD,
            "prompt_modification": CONSEQUENCES[tier]["prompt"]
            if self.state.enforcement is not Enforcement.SUGGESTION
            else "",
        }

    async def nudge_silent(self, now: datetime | None = None) -> dict[str, Any]:
        now = now or clock.now()
        cutoff = now - timedelta(seconds=self.silence_threshold)
        queued = self.state.queued_ids()
        silent = []
        nudges = {}
        last_seen = {}

        for agent in await self.directory.all_agents():
            seen = self.state.last_activity.get(agent.agent_id) or clock.parse(
                agent.last_activity_at
            )
            last_seen[agent.agent_id] = seen.isoformat() if seen else None
            if seen is not None and seen >= cutoff:
                continue

            silent.append(agent.agent_id)
            if agent.agent_id == self.state.holder:
                nudges[agent.agent_id] = (
                    f"{agent.name}, you have the speaking stick - please continue your discussion"
                )
            elif agent.agent_id in queued:
                position = queued.index(agent.agent_id) + 1
                nudges[agent.agent_id] = (
                    f"{agent.name}, you're #{position} in the speaking stick queue - get ready!"
                )
            else:
                nudges[agent.agent_id] = f"{agent.name}, you've been quiet - everything ok?"

        return {
            "silent_agents": silent,
            "suggested_nudges": nudges,
            "last_activity": last_seen,
            "speaking_stick_queue": queued,
            "threshold_seconds": self.silence_threshold,
        }

    async def status(self) -> dict[str, Any]:
        state = self.state
        queue = []
        for entry in state.queue:
            name = await self._name(entry["agent_id"])
            if name is None:
                continue
            queue.append(
                {
                    "id": entry["agent_id"],
                    "name": name,
                    "position": len(queue) + 1,
                    "urgent": entry["urgent"],
                    "topic": entry["topic"],
                }
            )
        privileges = (
            list(PRIVILEGES[state.privilege_level]["privileges"]) if state.holder else []
        )
        return {
            "mode": state.mode.value,
            "enforcement_level": state.enforcement.value,
            "ruler": state.ruler,
            "ruler_name": await self._name(state.ruler),
            "current_holder": state.holder,
            "current_holder_name": await self._name(state.holder),
            "current_holder_privileges": privileges,
            "topic": state.topic,
            "granted_at": state.granted_at,
            "stick_available": state.mode is Mode.CHAOS or state.holder is None,
            "queue_length": len(queue),
            "queue": queue,
            "violations": dict(state.violations),
            "total_violations": sum(state.violations.values()),
        }

    async def force_reset(self, initiated_by: str = "system") -> dict[str, Any]:
        initiated_by = optional_text(initiated_by, "initiated_by", 100) or "system"
        state = self.state
        previous_mode = state.mode
        previous_holder = state.holder
        previous_ruler = state.ruler
        cleared = len(state.queue)

        state.mode = Mode.CHAOS
        state.ruler = None
        state.holder = None
        state.queue = []
        state.topic = ""
        state.granted_at = None
        logger.warning(f"Speaking stick force-reset by {initiated_by}")

        await self.bus.publish(
            Event.STICK_RESET,
            {
                "initiated_by": initiated_by,
                "previous_mode": previous_mode.value,
                "previous_holder": previous_holder,
                "previous_ruler": previous_ruler,
                "cleared_queue_length": cleared,
            },
        )
        await self.bus.system_broadcast(
            f"[SPEAKING STICK RESET] The speaking stick has been forcefully reset by {initiated_by}. "
            "Everyone may broadcast again.",
            Priority.HIGH,
        )
        return {
            "reset": True,
            "previous_mode": previous_mode.value,
            "previous_holder": previous_holder,
            "previous_ruler": previous_ruler,
            "cleared_queue_length": cleared,
        }

    def reset(self) -> None:
        self.state = StickState()

    async def forget(self, agent_id: str) -> None:
        """Drop an unregistered agent from the gate."""
        state = self.state
        self._dequeue(agent_id)
        state.last_activity.pop(agent_id, None)
        if state.mode is not Mode.SPEAKING_STICK:
            return
        if agent_id == state.ruler:
            await self.force_reset(initiated_by="system")
        elif agent_id == state.holder:
            state.holder = state.ruler
            state.topic = ""
            state.privilege_level = PrivilegeLevel.STANDARD
            await self.bus.publish(
                Event.STICK_RELEASED,
                {
                    "released_by": agent_id,
                    "returned_to": state.ruler,
                    "summary": "holder unregistered",
                    "suggested_next": None,
                },
            )
