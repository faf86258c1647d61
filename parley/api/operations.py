"""Named operations: validate arguments, call the engine, summarise the result."""

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import pydantic
from pydantic import BaseModel

from parley.engine import Engine
from parley.errors import InternalError, ParleyError, ValidationError

from . import format, schemas

logger = logging.getLogger(__name__)


@dataclass
class Result:
    data: Any
    text: str
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"data": self.data, "text": self.text, "meta": self.meta}


@dataclass
class Operation:
    schema: type[BaseModel]
    call: Callable[[Engine, Any], Awaitable[Any]]
    summarise: Callable[[Any], str]


OPERATIONS: dict[str, Operation] = {
    "register-agent": Operation(
        schemas.RegisterAgent,
        lambda e, a: e.register_agent(a.name, a.description, a.instance_id),
        format.registered,
    ),
    "unregister-agent": Operation(
        schemas.AgentRef,
        lambda e, a: e.unregister_agent(a.agent_id),
        format.unregistered,
    ),
    "unregister-agent-by-instance": Operation(
        schemas.InstanceRef,
        lambda e, a: e.unregister_by_instance(a.instance_id),
        format.unregistered,
    ),
    "discover-agents": Operation(
        schemas.Empty,
        lambda e, a: e.discover_agents(),
        format.agents,
    ),
    "get-agent-profile": Operation(
        schemas.AgentRef,
        lambda e, a: e.agent_profile(a.agent_id),
        format.profile,
    ),
    "send-message": Operation(
        schemas.SendMessage,
        lambda e, a: e.send_message(a.from_, a.to, a.message),
        format.sent,
    ),
    "check-for-messages": Operation(
        schemas.AgentRef,
        lambda e, a: e.check_messages(a.agent_id),
        format.inbox,
    ),
    "update-agent-status": Operation(
        schemas.UpdateStatus,
        lambda e, a: e.update_status(a.agent_id, a.status),
        format.status_update,
    ),
    "subscribe-to-notifications": Operation(
        schemas.Subscribe,
        lambda e, a: e.subscribe(a.agent_id, a.events),
        format.subscribed,
    ),
    "unsubscribe-from-notifications": Operation(
        schemas.Unsubscribe,
        lambda e, a: e.unsubscribe(a.agent_id, a.events),
        format.unsubscribed,
    ),
    "send-broadcast": Operation(
        schemas.SendBroadcast,
        lambda e, a: e.send_broadcast(a.from_, a.message, a.priority),
        format.broadcast,
    ),
    "external-broadcast": Operation(
        schemas.ExternalBroadcast,
        lambda e, a: e.external_broadcast(a.api_key, a.message, a.priority, a.sender),
        format.broadcast,
    ),
    "get-pending-notifications": Operation(
        schemas.AgentRef,
        lambda e, a: e.pending_notifications(a.agent_id),
        format.pending,
    ),
    "grant-speaking-stick-to": Operation(
        schemas.GrantStick,
        lambda e, a: e.grant(a.granter, a.target, a.topic, a.privilege_level),
        format.granted,
    ),
    "request-speaking-stick": Operation(
        schemas.RequestStick,
        lambda e, a: e.request_stick(a.agent_id, a.topic, a.urgent),
        format.requested,
    ),
    "release-speaking-stick": Operation(
        schemas.ReleaseStick,
        lambda e, a: e.release(a.agent_id, a.summary, a.pass_to),
        format.released,
    ),
    "set-communication-mode": Operation(
        schemas.SetMode,
        lambda e, a: e.set_mode(a.mode, a.initiated_by, a.enforcement_level),
        format.mode_changed,
    ),
    "track-speaking-violation": Operation(
        schemas.TrackViolation,
        lambda e, a: e.track_violation(a.agent_id, a.violation_type, a.context),
        format.violation,
    ),
    "nudge-silent-agents": Operation(
        schemas.Empty,
        lambda e, a: e.nudge(),
        format.nudges,
    ),
    "get-speaking-stick-status": Operation(
        schemas.Empty,
        lambda e, a: e.stick_status(),
        format.stick_status,
    ),
    "force-reset-speaking-stick": Operation(
        schemas.ForceReset,
        lambda e, a: e.force_reset(a.initiated_by),
        format.reset,
    ),
}


def names() -> list[str]:
    return sorted(OPERATIONS)


def _parse(schema: type[BaseModel], arguments: dict[str, Any] | None) -> BaseModel:
    try:
        return schema.model_validate(arguments or {})
    except pydantic.ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationError(f"Invalid arguments: {problems}") from e


async def dispatch(engine: Engine, name: str, arguments: dict[str, Any] | None = None) -> Result:
    operation = OPERATIONS.get(name)
    if operation is None:
        raise ValidationError(f"Unknown operation: {name}")

    started = time.perf_counter()
    args = _parse(operation.schema, arguments)
    try:
        data = await operation.call(engine, args)
        return Result(
            data=data,
            text=operation.summarise(data),
            meta={
                "operation": name,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
    except ParleyError:
        raise
    except Exception as e:
        logger.exception(f"{name} failed")
        raise InternalError(f"{name} failed: {e}", original=e) from e
