"""Per-agent mailboxes in SQLite, plus gated broadcast fan-out."""

import logging
from pathlib import Path
from typing import Any

from .directory import AgentDirectory
from .lib import clock, ids
from .lib.sqlite import Database
from .lib.validate import require_choice, require_id, require_text
from .models import Event, Message, Priority, ViolationType
from .notifications import NotificationBus
from .stick import SpeakingStick

logger = logging.getLogger(__name__)

MAX_BODY = 10000
DEFAULT_PRESSURE_THRESHOLD = 50

MIGRATIONS = [
    (
        "create_messages",
        """
        CREATE TABLE IF NOT EXISTS messages (
            message_id TEXT PRIMARY KEY,
            sender_id TEXT NOT NULL,
            recipient_id TEXT NOT NULL,
            body TEXT NOT NULL,
            created_at TEXT NOT NULL,
            read INTEGER NOT NULL DEFAULT 0
        );
        CREATE INDEX IF NOT EXISTS idx_messages_recipient ON messages(recipient_id, created_at);
        """,
    ),
]


def _row_to_message(row) -> Message:
    return Message(
        message_id=row["message_id"],
        sender_id=row["sender_id"],
        recipient_id=row["recipient_id"],
        body=row["body"],
        created_at=row["created_at"],
        read=bool(row["read"]),
    )


class MailboxStore:
    """Messages are written and deleted synchronously between awaits, so no lock is needed."""

    def __init__(
        self,
        db_path: Path,
        bus: NotificationBus,
        gate: SpeakingStick,
        directory: AgentDirectory,
        pressure_threshold: int = DEFAULT_PRESSURE_THRESHOLD,
    ):
        self.db = Database(db_path, MIGRATIONS)
        self.bus = bus
        self.gate = gate
        self.directory = directory
        self.pressure_threshold = pressure_threshold

    def _store(self, sender_id: str, recipient_id: str, body: str) -> Message:
        message = Message(
            message_id=ids.message_id(),
            sender_id=sender_id,
            recipient_id=recipient_id,
            body=body,
            created_at=clock.iso(),
        )
        self.db.ensure().execute(
            "INSERT INTO messages (message_id, sender_id, recipient_id, body, created_at, read) "
            "VALUES (?, ?, ?, ?, ?, 0)",
            (
                message.message_id,
                message.sender_id,
                message.recipient_id,
                message.body,
                message.created_at,
            ),
        )
        return message

    async def _delivered(self, message: Message) -> None:
        await self.bus.publish(
            Event.MESSAGE_DELIVERED,
            {
                "message_id": message.message_id,
                "to": message.recipient_id,
                "from": message.sender_id,
                "delivered_at": message.created_at,
            },
        )
        pending = self.pending_count(message.recipient_id)
        if pending >= self.pressure_threshold:
            logger.warning(f"Mailbox pressure for {message.recipient_id}: {pending} pending")
            await self.bus.publish(
                Event.QUEUE_STATUS,
                {
                    "agent_id": message.recipient_id,
                    "pending_messages": pending,
                    "queue_size": self.pressure_threshold,
                    "utilization": round(pending / self.pressure_threshold, 2),
                },
            )

    async def send(self, sender_id: str, recipient_id: str, body: str) -> dict[str, Any]:
        sender_id = require_id(sender_id, "from")
        recipient_id = require_id(recipient_id, "to")
        body = require_text(body, "Message content", MAX_BODY)

        message = self._store(sender_id, recipient_id, body)
        await self._delivered(message)
        return {"success": True, "message_id": message.message_id}

    def get_messages(self, agent_id: str, unread_only: bool = False, limit: int = 0) -> list[Message]:
        agent_id = require_id(agent_id)
        query = "SELECT * FROM messages WHERE recipient_id = ?"
        if unread_only:
            query += " AND read = 0"
        query += " ORDER BY created_at, rowid"
        params: tuple = (agent_id,)
        if limit and limit > 0:
            query += " LIMIT ?"
            params = (agent_id, limit)
        rows = self.db.ensure().execute(query, params).fetchall()
        return [_row_to_message(row) for row in rows]

    def get(self, message_id: str) -> Message | None:
        message_id = require_id(message_id, "message_id")
        row = (
            self.db.ensure()
            .execute("SELECT * FROM messages WHERE message_id = ?", (message_id,))
            .fetchone()
        )
        return _row_to_message(row) if row else None

    async def mark_read(self, message_id: str) -> bool:
        message = self.get(message_id)
        if message is None:
            return False
        self.db.ensure().execute("UPDATE messages SET read = 1 WHERE message_id = ?", (message_id,))
        await self.bus.publish(
            Event.MESSAGE_ACKNOWLEDGED,
            {"message_id": message_id, "agent_id": message.recipient_id},
        )
        return True

    def delete_message(self, message_id: str) -> bool:
        message_id = require_id(message_id, "message_id")
        cursor = self.db.ensure().execute("DELETE FROM messages WHERE message_id = ?", (message_id,))
        return cursor.rowcount > 0

    def delete_for(self, agent_id: str) -> int:
        cursor = self.db.ensure().execute("DELETE FROM messages WHERE recipient_id = ?", (agent_id,))
        return cursor.rowcount

    def pending_count(self, agent_id: str) -> int:
        row = (
            self.db.ensure()
            .execute(
                "SELECT COUNT(*) FROM messages WHERE recipient_id = ? AND read = 0", (agent_id,)
            )
            .fetchone()
        )
        return row[0]

    async def _fan_out(self, sender_id: str, tagged: str, exclude: str | None) -> list[str]:
        recipients = [a.agent_id for a in await self.directory.all_agents() if a.agent_id != exclude]
        for recipient_id in recipients:
            message = self._store(sender_id, recipient_id, tagged)
            await self._delivered(message)
        return recipients

    async def broadcast(
        self, sender_id: str, body: str, priority: Priority | str = Priority.NORMAL
    ) -> dict[str, Any]:
        sender_id = require_id(sender_id, "from")
        body = require_text(body, "Message content", MAX_BODY)
        priority = require_choice(priority, "priority", Priority)

        if not self.gate.may_broadcast(sender_id):
            violation = await self.gate.track_violation(
                sender_id,
                ViolationType.SPOKE_WITHOUT_STICK,
                f"Attempted broadcast without the speaking stick: {body[:100]}",
            )
            logger.info(f"Broadcast from {sender_id} denied (holder: {self.gate.holder})")
            return {
                "success": False,
                "recipient_count": 0,
                "error": "You do not have the speaking stick",
                "violation_tracked": True,
                "total_violations": violation["total_violations"],
                "tier": violation["tier"],
                "consequence": violation["consequence_applied"],
                "current_holder": self.gate.holder,
                "ruler": self.gate.ruler,
            }

        self.gate.touch(sender_id)
        recipients = await self._fan_out(
            sender_id, f"[BROADCAST {priority.value.upper()}] {body}", exclude=sender_id
        )
        await self.bus.publish(
            Event.BROADCAST_MESSAGE,
            {"from": sender_id, "message": body, "priority": priority.value},
        )
        return {"success": True, "recipient_count": len(recipients), "recipients": recipients}

    async def inject(
        self, sender_label: str, body: str, priority: Priority | str = Priority.NORMAL
    ) -> dict[str, Any]:
        """System-originated broadcast to every agent; the gate does not apply."""
        label = require_text(sender_label, "sender", 100)
        body = require_text(body, "Message content", MAX_BODY)
        priority = require_choice(priority, "priority", Priority)

        tagged = f"[EXTERNAL BROADCAST {priority.value.upper()} from {label}] {body}"
        recipients = await self._fan_out("external", tagged, exclude=None)
        await self.bus.publish(
            Event.BROADCAST_MESSAGE,
            {
                "from": label,
                "message": body,
                "priority": priority.value,
                "is_system_message": True,
                "external": True,
            },
        )
        logger.info(f"External broadcast from {label} reached {len(recipients)} agents")
        return {"success": True, "recipient_count": len(recipients), "recipients": recipients}

    def close(self) -> None:
        self.db.close()
