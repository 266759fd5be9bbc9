"""Token revocation against either generation of the token API."""

from __future__ import annotations

import logging
from typing import Optional

from .client import ArtifactoryClient
from .constants import ACCESS_TOKENS_PATH, LEGACY_REVOKE_PATH
from .errors import UpstreamRejectedError
from .version import VersionGate

logger = logging.getLogger(__name__)

# Statuses meaning the token is already gone.
ALREADY_REVOKED_STATUSES = frozenset({404, 410})


class RevocationExecutor:
    """Revokes tokens; revoking an absent token succeeds."""

    def __init__(self, client: ArtifactoryClient, gate: VersionGate) -> None:
        self._client = client
        self._gate = gate

    def revoke(self, token_id: str, access_token: Optional[str] = None) -> None:
        """Revoke a token by id (or, on legacy upstreams, by value).

        Raises:
            UpstreamRejectedError: For any failure other than "not found".
        """
        if self._gate.use_new_access_api():
            if not token_id:
                raise ValueError("token id required to revoke an access token")
            resp = self._client.delete(f"{ACCESS_TOKENS_PATH}/{token_id}")
        else:
            if token_id:
                values = {"token_id": token_id}
            elif access_token:
                values = {"token": access_token}
            else:
                raise ValueError("token id or access token required to revoke")
            resp = self._client.post_form(LEGACY_REVOKE_PATH, values)

        if resp.status_code in ALREADY_REVOKED_STATUSES:
            logger.info(f"Token {token_id or '(by value)'} already revoked")
            return
        if resp.status_code >= 400:
            logger.error(
                f"Revoking token {token_id} returned status {resp.status_code}: {resp.text}"
            )
            raise UpstreamRejectedError(
                f"could not revoke token {token_id}: HTTP response {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )
        logger.info(f"Revoked token {token_id or '(by value)'}")
