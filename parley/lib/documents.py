"""Whole-file JSON documents with atomic replacement."""

import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class JsonDocument:
    """A JSON object persisted as one file, read and rewritten wholesale.

    Safe only with a single writer: callers serialise read/mutate/write
    cycles (see FifoLock). Writes go to a temp file that replaces the target,
    so readers never observe a half-written document.
    """

    def __init__(self, path: Path):
        self.path = path

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}

        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"{self.path.name}: corrupted document, starting empty ({e})")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"{self.path.name}: expected a JSON object, got {type(data).__name__}")
            return {}
        return data

    def write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(f"{self.path.name}.tmp.{os.getpid()}")
        try:
            tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise
