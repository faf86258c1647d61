from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable


class Mode(str, Enum):
    CHAOS = "chaos"
    SPEAKING_STICK = "speaking-stick"


class Enforcement(str, Enum):
    SUGGESTION = "suggestion"
    PROMPT_MODIFICATION = "prompt-modification"
    SOCIAL_PRESSURE = "social-pressure"


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class ViolationTier(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SHAME = "shame"


class ViolationType(str, Enum):
    SPOKE_WITHOUT_STICK = "spoke-without-stick"
    INTERRUPTED = "interrupted"
    IGNORED_QUEUE = "ignored-queue"
    OTHER = "other"


class PrivilegeLevel(str, Enum):
    STANDARD = "standard"
    EXPERT = "expert"
    DEEP_ANALYSIS = "deep-analysis"
    LEADERSHIP = "leadership"


class Event(str, Enum):
    AGENT_REGISTERED = "agent/registered"
    AGENT_UNREGISTERED = "agent/unregistered"
    AGENT_STATUS_CHANGED = "agent/statusChanged"
    MESSAGE_DELIVERED = "message/delivered"
    MESSAGE_ACKNOWLEDGED = "message/acknowledged"
    BROADCAST_MESSAGE = "broadcast/message"
    QUEUE_STATUS = "queue/status"
    STICK_MODE_CHANGED = "stick/modeChanged"
    STICK_GRANTED = "stick/granted"
    STICK_RELEASED = "stick/released"
    STICK_RESET = "stick/reset"


@dataclass
class AgentStats:
    messages_sent: int = 0
    messages_received: int = 0
    broadcasts_sent: int = 0
    last_message_at: str | None = None


@dataclass
class Relationship:
    message_count: int = 0
    last_contact: str | None = None


@dataclass
class Agent:
    agent_id: str
    name: str
    description: str
    status: str = "just joined"
    registered_at: str | None = None
    last_activity_at: str | None = None
    stats: AgentStats = field(default_factory=AgentStats)
    relationships: dict[str, Relationship] = field(default_factory=dict)

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.agent_id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "last_activity_at": self.last_activity_at,
        }

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Agent":
        stats = AgentStats(**(data.get("stats") or {}))
        relationships = {
            peer: Relationship(**rel) for peer, rel in (data.get("relationships") or {}).items()
        }
        return cls(
            agent_id=data["agent_id"],
            name=data["name"],
            description=data.get("description", ""),
            status=data.get("status") or "just joined",
            registered_at=data.get("registered_at"),
            last_activity_at=data.get("last_activity_at"),
            stats=stats,
            relationships=relationships,
        )


@dataclass
class Message:
    message_id: str
    sender_id: str
    recipient_id: str
    body: str
    created_at: str
    read: bool = False


@dataclass
class Notification:
    notification_id: str
    method: str
    params: dict[str, Any]
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        """JSON-RPC 2.0 notification form (no id)."""
        return {
            "jsonrpc": "2.0",
            "method": self.method,
            "params": {**self.params, "timestamp": self.timestamp},
        }


Callback = Callable[[Notification], Awaitable[None] | None]


@dataclass
class Subscription:
    agent_id: str
    patterns: list[str]
    callback: Callback | None = None
    subscribed_at: str | None = None


@dataclass
class StickState:
    mode: Mode = Mode.CHAOS
    enforcement: Enforcement = Enforcement.SUGGESTION
    ruler: str | None = None
    holder: str | None = None
    queue: list[dict[str, Any]] = field(default_factory=list)
    violations: dict[str, int] = field(default_factory=dict)
    last_activity: dict[str, datetime] = field(default_factory=dict)
    topic: str = ""
    privilege_level: PrivilegeLevel = PrivilegeLevel.STANDARD
    granted_at: str | None = None

    def queued_ids(self) -> list[str]:
        return [entry["agent_id"] for entry in self.queue]


@dataclass
class InstanceMapping:
    instance_id: str
    agent_id: str
    agent_name: str
    registered_at: str
