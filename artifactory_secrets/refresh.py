"""Transparent refresh of expired delegated (user) credentials."""

from __future__ import annotations

import logging

from .client import ArtifactoryClient
from .errors import TokenExpiredError
from .introspect import TokenIntrospector
from .issuer import TokenIssuer
from .models import IssuanceRequest, IssuanceResponse, UserTokenConfiguration
from .persistence import ConfigRepository
from .version import VersionGate

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    """Issues tokens with a delegated credential, refreshing it once if expired.

    ``key`` arguments name the repository record the user configuration was
    loaded from; refreshed tokens are written back there.
    """

    def __init__(
        self,
        repository: ConfigRepository,
        client: ArtifactoryClient,
        gate: VersionGate,
    ) -> None:
        self._repository = repository
        self._client = client
        self._gate = gate

    def _issuer(self, user_config: UserTokenConfiguration) -> TokenIssuer:
        return TokenIssuer(
            self._client.with_access_token(user_config.access_token), self._gate
        )

    def refresh(
        self, key: str, user_config: UserTokenConfiguration
    ) -> UserTokenConfiguration:
        """Exchange the stored refresh token and persist the new pair."""
        if not user_config.refresh_token:
            raise TokenExpiredError("access token expired and no refresh token is stored")

        refreshed = self._issuer(user_config).refresh(user_config.refresh_token)
        user_config.access_token = refreshed.access_token
        if refreshed.refresh_token:
            user_config.refresh_token = refreshed.refresh_token
        self._repository.put(key, user_config.model_dump())
        logger.info(f"Refreshed access token stored at {key}")
        return user_config

    def issue(
        self, key: str, user_config: UserTokenConfiguration, request: IssuanceRequest
    ) -> IssuanceResponse:
        """Issue ``request``; on an expired credential refresh and retry once."""
        try:
            return self._issuer(user_config).issue(request)
        except TokenExpiredError:
            if not user_config.refresh_token:
                raise
            logger.info("Access token expired. Attempting refresh using the refresh token.")

        user_config = self.refresh(key, user_config)
        # the old gate may still probe with the expired credential
        self._gate = self._gate.rebind(
            self._client.with_access_token(user_config.access_token)
        )
        return self._issuer(user_config).issue(request)

    def refresh_if_expired(self, key: str, user_config: UserTokenConfiguration) -> bool:
        """Ask the upstream whether the credential expired and refresh it if so.

        Returns ``True`` when a refresh happened.
        """
        client = self._client.with_access_token(user_config.access_token)
        try:
            TokenIntrospector(client, self._gate).ensure_active()
        except TokenExpiredError:
            logger.info("Access token expired. Attempting refresh using the refresh token.")
            self.refresh(key, user_config)
            return True
        return False
