"""Pydantic models for stored configuration, token exchange and leases."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .constants import GRANT_TYPE_CLIENT_CREDENTIALS


class AdminConfiguration(BaseModel):
    """Admin credential and backend-wide defaults, stored at ``config/admin``."""

    access_token: str = ""
    url: str = ""
    use_expiring_tokens: bool = False
    force_revocable: Optional[bool] = None
    default_ttl: int = Field(default=0, ge=0)
    max_ttl: int = Field(default=0, ge=0)
    revoke_on_delete: bool = False


class RoleDefinition(BaseModel):
    """Parameters for tokens issued through ``roles/<name>``."""

    grant_type: str = GRANT_TYPE_CLIENT_CREDENTIALS
    username: str = ""
    scope: str = ""
    refreshable: bool = False
    audience: str = ""
    description: str = ""
    include_reference_token: bool = False
    default_ttl: int = Field(default=0, ge=0)
    max_ttl: int = Field(default=0, ge=0)


class UserTokenConfiguration(BaseModel):
    """Per-user (or global) settings for delegated user tokens."""

    url: str = ""
    access_token: str = ""
    refresh_token: str = ""
    audience: str = ""
    refreshable: bool = False
    include_reference_token: bool = False
    use_expiring_tokens: bool = False
    force_revocable: Optional[bool] = None
    default_ttl: int = Field(default=0, ge=0)
    max_ttl: int = Field(default=0, ge=0)
    default_description: str = ""


class IssuanceRequest(BaseModel):
    """Everything the issuer needs to ask the upstream for one token."""

    grant_type: str = GRANT_TYPE_CLIENT_CREDENTIALS
    username: str = ""
    scope: str = ""
    audience: str = ""
    description: str = ""
    refreshable: bool = False
    include_reference_token: bool = False
    refresh_token: str = ""
    ttl: int = Field(default=0, ge=0)
    max_ttl: int = Field(default=0, ge=0)
    use_expiring_tokens: bool = False
    force_revocable: Optional[bool] = None

    @model_validator(mode="after")
    def _require_username(self) -> "IssuanceRequest":
        if self.grant_type == GRANT_TYPE_CLIENT_CREDENTIALS and not self.username:
            raise ValueError("empty username not allowed, possibly a template error")
        return self


class IssuanceResponse(BaseModel):
    """Normalised token creation response from either API generation."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str
    refresh_token: str = ""
    reference_token: str = ""
    token_id: str = ""
    scope: str = ""
    expires_in: int = 0
    token_type: str = ""


class TokenClaims(BaseModel):
    """Claims derived from an access token; never persisted."""

    model_config = ConfigDict(frozen=True)

    token_id: str
    username: str = ""
    scope: str = ""
    expires: Optional[int] = None


class RotationState(str, Enum):
    IDLE = "idle"
    INTROSPECTING = "introspecting"
    ISSUING = "issuing"
    PERSISTED = "persisted"
    OLD_REVOKED = "old_revoked"
    FAILED = "failed"


class RotationResult(BaseModel):
    """Outcome of one admin credential rotation."""

    state: RotationState = RotationState.IDLE
    username: str = ""
    scope: str = ""
    old_token_id: str = ""
    new_token_id: str = ""


class Lease(BaseModel):
    """A credential handed to the caller together with its lease limits."""

    data: Dict[str, Any] = Field(default_factory=dict)
    internal_data: Dict[str, Any] = Field(default_factory=dict)
    ttl: int = 0
    max_ttl: int = 0
    renewable: bool = False
    warnings: List[str] = Field(default_factory=list)
