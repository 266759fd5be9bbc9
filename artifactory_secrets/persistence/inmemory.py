"""In-memory implementation of the configuration repository."""

from __future__ import annotations

import copy
import threading
from typing import Any, Dict

from .repository import ConfigRepository


class InMemoryConfigRepository(ConfigRepository):
    """Store configuration records in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._records: Dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            record = self._records.get(key)
            return copy.deepcopy(record) if record is not None else None

    def put(self, key: str, record: dict[str, Any]) -> None:
        with self._lock:
            self._records[key] = copy.deepcopy(record)

    def delete(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)

    def list(self, prefix: str) -> list[str]:
        with self._lock:
            return sorted(k[len(prefix):] for k in self._records if k.startswith(prefix))
