"""Access URL storage.

The façade needs a tiny key-value store: get, set, remove. MemoryStore
is for tests and one-off scripts; JSONFileStore keeps everything in one
JSON file readable only by its owner (access URLs contain credentials).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """In-process store backed by a dict."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class JSONFileStore:
    """Store backed by a single JSON file, rewritten on every change.

    Layout: {"<key>": {"value": "...", "saved_at": "<ISO timestamp>"}}
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except ValueError as e:
            logger.warning("Ignoring unreadable access URL store %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))
        # Restrict permissions (contains credentials)
        self.path.chmod(0o600)

    def get(self, key: str) -> str | None:
        entry = self._load().get(key)
        if not isinstance(entry, dict):
            return None
        value = entry.get("value")
        return value if isinstance(value, str) else None

    def saved_at(self, key: str) -> datetime | None:
        entry = self._load().get(key)
        if not isinstance(entry, dict) or "saved_at" not in entry:
            return None
        return datetime.fromisoformat(entry["saved_at"])

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = {
            "value": value,
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._write(data)
