from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class HttpConfig(BaseModel):
    """Settings for the shared upstream HTTP session."""

    timeout: float = 30.0


class SystemConfig(BaseModel):
    """System-wide lease limits, in seconds. Zero means unset."""

    default_ttl: int = Field(default=0, ge=0)
    max_ttl: int = Field(default=0, ge=0)


class EngineConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    validate_signatures: bool = True
    usage_reporting: bool = True
    http: HttpConfig = HttpConfig()
    system: SystemConfig = SystemConfig()


def load_config(path: Optional[str] = None) -> EngineConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to
            ARTIFACTORY_SECRETS_CONFIG env variable or 'config.yaml' in the
            current directory.
    """

    config_path = path or os.getenv("ARTIFACTORY_SECRETS_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = EngineConfig(**data)
    else:
        config = EngineConfig()

    env_db_url = os.getenv("ARTIFACTORY_SECRETS_DATABASE_URL") or os.getenv(
        "DATABASE_URL"
    )
    if env_db_url:
        config.database_url = env_db_url
    return config
