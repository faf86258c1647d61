"""Coordination engine for autonomous agents: directory, mailboxes, notifications, speaking stick."""

from .config import Settings, load_settings
from .engine import Engine, create_engine
from .errors import (
    InternalError,
    NotFoundError,
    ParleyError,
    PermissionDeniedError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "Engine",
    "InternalError",
    "NotFoundError",
    "ParleyError",
    "PermissionDeniedError",
    "Settings",
    "ValidationError",
    "create_engine",
    "load_settings",
]
