"""Stable per-terminal device identity used for device binding."""
from __future__ import annotations

import json
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

DEVICE_ID_KEY = "access_device_id_v1"
STORE_FILENAME = "terminal-store.json"


class LocalStore:
    """Tiny durable key/value store backed by a JSON file.

    Raises ``OSError`` when the backing file cannot be read or written; callers
    decide how to degrade.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def _read_all(self) -> Dict[str, str]:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Terminal store %s is corrupt; starting fresh", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) and value else None

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)


def _generate_id() -> str:
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        # os.urandom unavailable
        return f"{uuid.getnode():x}{time.time_ns():x}"


class DeviceIdentity:
    """Lazily creates and remembers the terminal's device id."""

    def __init__(self, store: LocalStore) -> None:
        self._store = store
        self._ephemeral_id: Optional[str] = None

    @classmethod
    def from_directory(cls, state_directory: Path) -> "DeviceIdentity":
        return cls(LocalStore(Path(state_directory) / STORE_FILENAME))

    def get_or_create_device_id(self) -> str:
        """Return the persisted device id, creating it on first use. Never raises."""
        if self._ephemeral_id:
            return self._ephemeral_id
        try:
            existing = self._store.get(DEVICE_ID_KEY)
            if existing:
                return existing
            device_id = _generate_id()
            self._store.set(DEVICE_ID_KEY, device_id)
            logger.info("🆔 New device id created: %s", device_id)
            return device_id
        except OSError as exc:
            self._ephemeral_id = _generate_id()
            logger.warning(
                "Device store unavailable (%s); using ephemeral device id %s for this run",
                exc,
                self._ephemeral_id,
            )
            return self._ephemeral_id


__all__ = ["DEVICE_ID_KEY", "LocalStore", "DeviceIdentity"]
