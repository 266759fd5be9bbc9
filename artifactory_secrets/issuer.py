"""Token creation and refresh against either generation of the token API."""

from __future__ import annotations

import logging
from typing import Any, Dict

import requests
from pydantic import ValidationError

from .client import ArtifactoryClient, decode_json, error_message
from .constants import (
    ACCESS_TOKENS_PATH,
    GRANT_TYPE_CLIENT_CREDENTIALS,
    GRANT_TYPE_REFRESH_TOKEN,
    INVALID_TOKEN_EXPIRED,
    LEGACY_TOKEN_PATH,
)
from .errors import MalformedResponseError, TokenExpiredError, UpstreamRejectedError
from .models import IssuanceRequest, IssuanceResponse
from .version import VersionGate

logger = logging.getLogger(__name__)


class TokenIssuer:
    """Creates and refreshes access tokens using the client's credential."""

    def __init__(self, client: ArtifactoryClient, gate: VersionGate) -> None:
        self.client = client
        self._gate = gate

    def expires_in(self, request: IssuanceRequest) -> int:
        """Lifetime to request from the upstream, zero for non-expiring.

        Tokens carrying an expiry cannot be reliably revoked unless the
        upstream supports force-revocable tokens, so an expiry is only sent
        when the caller opted in and the upstream is new enough.
        """
        if request.use_expiring_tokens and request.ttl > 0:
            if self._gate.supports_expiring_tokens():
                return request.ttl
            logger.warning(
                "Expiring tokens requested but not supported by this Artifactory version"
            )
        return 0

    def build_payload(
        self, request: IssuanceRequest, new_api: bool
    ) -> Dict[str, Any]:
        """Return the request body for the selected protocol shape."""
        expires_in = self.expires_in(request)

        if not new_api:
            return {
                "grant_type": GRANT_TYPE_CLIENT_CREDENTIALS,
                "username": request.username,
                "scope": request.scope,
                "expires_in": str(expires_in),
                "refreshable": "true" if request.refreshable else "false",
                "audience": request.audience,
            }

        payload: Dict[str, Any] = {"expires_in": expires_in}
        optional = {
            "grant_type": request.grant_type,
            "username": request.username,
            "scope": request.scope,
            "refreshable": request.refreshable,
            "description": request.description,
            "audience": request.audience,
            "include_reference_token": request.include_reference_token,
            "refresh_token": request.refresh_token,
        }
        if expires_in > 0:
            optional["force_revocable"] = (
                True if request.force_revocable is None else request.force_revocable
            )
        payload.update({key: value for key, value in optional.items() if value})
        return payload

    def issue(self, request: IssuanceRequest) -> IssuanceResponse:
        """Create a token as described by ``request``.

        Raises:
            TokenExpiredError: If the client's own credential has expired.
            UpstreamRejectedError: For any other non-200 answer.
        """
        new_api = self._gate.use_new_access_api()
        payload = self.build_payload(request, new_api)
        logger.debug(
            f"Creating access token for {request.username or '(no username)'} "
            f"scope={request.scope!r} expires_in={payload['expires_in']}"
        )
        if new_api:
            resp = self.client.post_json(ACCESS_TOKENS_PATH, payload)
        else:
            resp = self.client.post_form(LEGACY_TOKEN_PATH, payload)
        return self._handle_response(resp, "create")

    def refresh(self, refresh_token: str) -> IssuanceResponse:
        """Exchange ``refresh_token`` for a new access/refresh token pair."""
        if not refresh_token:
            raise ValueError("no refresh token supplied")

        if self._gate.use_new_access_api():
            resp = self.client.post_json(
                ACCESS_TOKENS_PATH,
                {"grant_type": GRANT_TYPE_REFRESH_TOKEN, "refresh_token": refresh_token},
            )
        else:
            resp = self.client.post_form(
                LEGACY_TOKEN_PATH,
                {
                    "grant_type": GRANT_TYPE_REFRESH_TOKEN,
                    "refresh_token": refresh_token,
                    "access_token": self.client.access_token,
                },
            )
        return self._handle_response(resp, "refresh")

    def _handle_response(self, resp: requests.Response, action: str) -> IssuanceResponse:
        if resp.status_code != 200:
            message = error_message(resp)
            if resp.status_code == 401 and INVALID_TOKEN_EXPIRED.match(message):
                raise TokenExpiredError()
            logger.error(
                f"Token {action} returned status {resp.status_code}: {message}"
            )
            raise UpstreamRejectedError(
                f"could not {action} access token: {message}",
                status_code=resp.status_code,
                body=resp.text,
            )

        body = decode_json(resp, f"token {action}")
        try:
            return IssuanceResponse.model_validate(body)
        except ValidationError as e:
            logger.error(f"Unexpected token {action} response: {e}")
            raise MalformedResponseError(
                f"could not {action} access token: unexpected response"
            ) from e
