"""Repository abstraction for stored engine configuration."""

from __future__ import annotations

from typing import Any, Protocol


class ConfigRepository(Protocol):
    """Protocol for configuration storage backends.

    Records are JSON-compatible dictionaries keyed by slash separated paths
    such as ``config/admin`` or ``roles/deployer``.
    """

    def get(self, key: str) -> dict[str, Any] | None:
        """Return the record stored under ``key``, or ``None``."""

    def put(self, key: str, record: dict[str, Any]) -> None:
        """Store ``record`` under ``key``, replacing any previous value."""

    def delete(self, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""

    def list(self, prefix: str) -> list[str]:
        """Return the keys below ``prefix`` with the prefix stripped."""
