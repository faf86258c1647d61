"""Wildcard pub/sub with store-and-forward for subscribers that are not listening."""

import inspect
import logging
from collections import deque
from typing import Any

from .errors import NotFoundError, ValidationError
from .lib import clock, ids
from .lib.validate import require_id
from .models import Callback, Event, Notification, Priority, Subscription

logger = logging.getLogger(__name__)

DEFAULT_MAX_PENDING = 1000


def validate_pattern(pattern) -> str:
    if not isinstance(pattern, str) or not pattern.strip():
        raise ValidationError("Event pattern must be a non-empty string")
    pattern = pattern.strip()
    if pattern == "*":
        return pattern
    if "*" in pattern and (not pattern.endswith("/*") or pattern.count("*") > 1):
        raise ValidationError(f"Invalid event pattern '{pattern}': use an exact name or 'prefix/*'")
    return pattern


def matches(pattern: str, method: str) -> bool:
    if pattern == "*":
        return True
    if pattern.endswith("/*"):
        return method.startswith(pattern[:-1])
    return pattern == method


class NotificationBus:
    """Routes published events to subscribers.

    Delivery is one or the other, never both: a subscriber whose live callback
    succeeds gets nothing queued. Subscribers without a callback, or whose
    callback raises, find the notification in their pending queue.
    """

    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING):
        self.max_pending = max_pending
        self._subscriptions: dict[str, Subscription] = {}
        self._pending: dict[str, deque[Notification]] = {}

    def subscribe(
        self, agent_id: str, patterns: list[str], callback: Callback | None = None
    ) -> dict[str, Any]:
        agent_id = require_id(agent_id)
        if not isinstance(patterns, list | tuple) or not patterns:
            raise ValidationError("At least one event pattern is required")

        ordered = list(dict.fromkeys(validate_pattern(p) for p in patterns))
        self._subscriptions[agent_id] = Subscription(
            agent_id=agent_id,
            patterns=ordered,
            callback=callback,
            subscribed_at=clock.iso(),
        )
        self._pending.setdefault(agent_id, deque())
        logger.debug(f"{agent_id} subscribed to {ordered}")
        return {"success": True, "agent_id": agent_id, "events": ordered}

    def unsubscribe(self, agent_id: str, patterns: list[str] | None = None) -> dict[str, Any]:
        agent_id = require_id(agent_id)
        subscription = self._subscriptions.get(agent_id)
        if subscription is None:
            return {"success": False, "message": "No subscription found"}

        if patterns:
            removed = {validate_pattern(p) for p in patterns}
            subscription.patterns = [p for p in subscription.patterns if p not in removed]
            if subscription.patterns:
                return {"success": True, "remaining": list(subscription.patterns)}

        del self._subscriptions[agent_id]
        return {"success": True, "remaining": []}

    def attach(self, agent_id: str, callback: Callback) -> None:
        subscription = self._subscriptions.get(agent_id)
        if subscription is None:
            raise NotFoundError(f"No subscription for {agent_id}")
        subscription.callback = callback

    def detach(self, agent_id: str) -> None:
        subscription = self._subscriptions.get(agent_id)
        if subscription is not None:
            subscription.callback = None

    def get(self, agent_id: str) -> Subscription | None:
        return self._subscriptions.get(agent_id)

    def subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions.values())

    def pending_count(self, agent_id: str) -> int:
        return len(self._pending.get(agent_id, ()))

    def drain_pending(self, agent_id: str) -> list[Notification]:
        queue = self._pending.pop(agent_id, None)
        if agent_id in self._subscriptions:
            self._pending[agent_id] = deque()
        return list(queue) if queue else []

    def _enqueue(self, agent_id: str, notification: Notification) -> None:
        queue = self._pending.setdefault(agent_id, deque())
        if len(queue) >= self.max_pending:
            dropped = queue.popleft()
            logger.warning(
                f"Pending queue full for {agent_id}; dropped {dropped.method} "
                f"({dropped.notification_id})"
            )
        queue.append(notification)

    async def publish(self, method: str | Event, params: dict[str, Any] | None = None) -> Notification:
        method = method.value if isinstance(method, Event) else method
        notification = Notification(
            notification_id=ids.notification_id(),
            method=method,
            params=dict(params or {}),
            timestamp=clock.iso(),
        )

        # Snapshot first: callbacks may subscribe or unsubscribe while we deliver.
        targets = [
            sub
            for sub in self._subscriptions.values()
            if any(matches(p, method) for p in sub.patterns)
        ]

        for sub in targets:
            if sub.callback is None:
                self._enqueue(sub.agent_id, notification)
                continue
            try:
                result = sub.callback(notification)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Callback for {sub.agent_id} failed on {method}: {e}")
                self._enqueue(sub.agent_id, notification)

        return notification

    async def system_broadcast(
        self, message: str, priority: Priority | str = Priority.NORMAL, **extra
    ) -> Notification:
        priority = Priority(priority)
        return await self.publish(
            Event.BROADCAST_MESSAGE,
            {
                "from": "system",
                "message": message,
                "priority": priority.value,
                "is_system_message": True,
                **extra,
            },
        )

    def forget(self, agent_id: str) -> None:
        """Drop the subscription and any undrained notifications of a departed agent."""
        self._subscriptions.pop(agent_id, None)
        self._pending.pop(agent_id, None)

    def clear(self) -> None:
        self._subscriptions.clear()
        self._pending.clear()
