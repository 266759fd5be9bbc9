"""Replacement of the engine's own admin credential."""

from __future__ import annotations

import logging
from typing import Optional

from .client import ArtifactoryClient
from .constants import (
    ADMIN_CONFIG_KEY,
    DEFAULT_ADMIN_USERNAME,
    DEFAULT_ROTATION_DESCRIPTION,
    GRANT_TYPE_CLIENT_CREDENTIALS,
)
from .errors import ConfigurationMissingError, StaleCredentialError
from .introspect import TokenIntrospector
from .issuer import TokenIssuer
from .models import AdminConfiguration, IssuanceRequest, RotationResult, RotationState
from .persistence import ConfigRepository
from .revoke import RevocationExecutor
from .version import VersionGate

logger = logging.getLogger(__name__)


class RotationCoordinator:
    """Rotates the admin access token.

    Steps run ``INTROSPECTING -> ISSUING -> PERSISTED -> OLD_REVOKED``. The
    new token is stored before the old one is revoked, so a failed revoke
    never leaves the engine without a working credential. Any failure before
    ``PERSISTED`` leaves storage untouched.
    """

    def __init__(
        self,
        repository: ConfigRepository,
        client: ArtifactoryClient,
        gate: VersionGate,
        validate_signatures: bool = True,
    ) -> None:
        self._repository = repository
        self._client = client
        self._gate = gate
        self._validate = validate_signatures

    def _load_config(self) -> AdminConfiguration:
        record = self._repository.get(ADMIN_CONFIG_KEY)
        if record is None:
            raise ConfigurationMissingError()
        config = AdminConfiguration.model_validate(record)
        if not config.access_token:
            raise ConfigurationMissingError("missing access token")
        return config

    def rotate(
        self, username: Optional[str] = None, description: Optional[str] = None
    ) -> RotationResult:
        """Issue a new admin token, store it, then revoke the previous one.

        Raises:
            StaleCredentialError: The new token is stored but the old one
                could not be revoked.
        """
        result = RotationResult()
        config = self._load_config()
        old_client = self._client.with_access_token(config.access_token)

        try:
            result.state = RotationState.INTROSPECTING
            claims = TokenIntrospector(old_client, self._gate).introspect(
                config.access_token, validate=self._validate
            )
            result.old_token_id = claims.token_id
            result.username = username or claims.username or DEFAULT_ADMIN_USERNAME
            result.scope = claims.scope

            result.state = RotationState.ISSUING
            created = TokenIssuer(old_client, self._gate).issue(
                IssuanceRequest(
                    grant_type=GRANT_TYPE_CLIENT_CREDENTIALS,
                    username=result.username,
                    scope=result.scope,
                    description=description or DEFAULT_ROTATION_DESCRIPTION,
                )
            )
            result.new_token_id = created.token_id

            config.access_token = created.access_token
            config.revoke_on_delete = True
            self._repository.put(ADMIN_CONFIG_KEY, config.model_dump())
            result.state = RotationState.PERSISTED
            logger.info(
                f"Stored rotated admin token {created.token_id or '(unknown id)'} "
                f"for {result.username}"
            )
        except Exception:
            logger.error(f"Admin token rotation failed while {result.state.value}")
            result.state = RotationState.FAILED
            raise

        new_client = old_client.with_access_token(created.access_token)
        try:
            RevocationExecutor(new_client, self._gate).revoke(
                claims.token_id, access_token=old_client.access_token
            )
        except Exception as e:
            logger.error(f"Could not revoke previous admin token {claims.token_id}: {e}")
            raise StaleCredentialError(claims.token_id, result, cause=e) from e

        result.state = RotationState.OLD_REVOKED
        logger.info(f"Revoked previous admin token {claims.token_id}")
        return result
