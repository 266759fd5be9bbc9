"""Persistence layer for engine configuration."""

from __future__ import annotations

import logging
from typing import Optional

from ..config import EngineConfig, load_config
from ..errors import InvalidConfigurationError
from .inmemory import InMemoryConfigRepository
from .repository import ConfigRepository
from .sqlite import SQLiteConfigRepository

logger = logging.getLogger(__name__)

_repository_instance: ConfigRepository | None = None


def get_repository(
    database_url: Optional[str] = None, config: Optional[EngineConfig] = None
) -> ConfigRepository:
    """Return the configuration repository for this process.

    ``database_url`` wins over ``config.database_url``; when neither names a
    backend the records live in memory. Supported schemes are ``memory://``
    and ``sqlite://<path>``. Called without arguments, the repository created
    last is reused.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    scheme, _, location = (database_url or config.database_url or "memory://").partition(
        "://"
    )

    if scheme == "memory":
        repository: ConfigRepository = InMemoryConfigRepository()
    elif scheme == "sqlite":
        repository = SQLiteConfigRepository(location)
    else:
        raise InvalidConfigurationError(f"unsupported database backend: {scheme}")

    logger.info(f"Using {scheme} configuration storage")
    _repository_instance = repository
    return repository


__all__ = [
    "ConfigRepository",
    "InMemoryConfigRepository",
    "SQLiteConfigRepository",
    "get_repository",
]
