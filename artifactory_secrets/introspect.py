"""Access token decoding and optional signature validation."""

from __future__ import annotations

import base64
import binascii
import logging
from decimal import Decimal, InvalidOperation
from functools import singledispatch
from typing import Any, Mapping, Optional

import jwt
from cryptography import x509

from .client import ArtifactoryClient, error_message
from .constants import (
    ACCEPTED_SIGNING_ALGORITHMS,
    ACCESS_TOKEN_SELF_PATH,
    INVALID_TOKEN_EXPIRED,
    ROOT_CERT_PATH,
)
from .errors import (
    InvalidTokenError,
    MalformedResponseError,
    TokenExpiredError,
    UpstreamRejectedError,
    VersionIncompatibleError,
)
from .models import TokenClaims
from .version import VersionGate

logger = logging.getLogger(__name__)


@singledispatch
def coerce_timestamp(value: Any) -> Optional[int]:
    """Convert a numeric ``exp`` claim into an integer Unix timestamp.

    Accepts ints, floats, :class:`~decimal.Decimal` and numeric strings;
    returns ``None`` for anything else (including a missing claim).
    """
    return None


@coerce_timestamp.register
def _(value: int) -> Optional[int]:
    if isinstance(value, bool):
        return None
    return value


@coerce_timestamp.register
def _(value: float) -> Optional[int]:
    return int(value)


@coerce_timestamp.register
def _(value: Decimal) -> Optional[int]:
    if not value.is_finite():
        return None
    return int(value)


@coerce_timestamp.register
def _(value: str) -> Optional[int]:
    try:
        return coerce_timestamp(Decimal(value.strip()))
    except InvalidOperation:
        return None


def claims_from_payload(payload: Mapping[str, Any]) -> TokenClaims:
    """Build :class:`TokenClaims` from decoded JWT claims.

    The subject looks like ``jfac@<service id>/users/<username>``; everything
    from the third segment onward is the username, which may contain ``/``.
    """
    token_id = payload.get("jti")
    if not token_id:
        raise InvalidTokenError("access token carries no token id (jti)")
    sub = payload.get("sub") or ""
    if not isinstance(sub, str):
        raise InvalidTokenError("access token subject is not a string")
    return TokenClaims(
        token_id=str(token_id),
        username="/".join(sub.split("/")[2:]),
        scope=str(payload.get("scp") or ""),
        expires=coerce_timestamp(payload.get("exp")),
    )


class TokenIntrospector:
    """Decodes access tokens issued by the upstream."""

    def __init__(self, client: ArtifactoryClient, gate: VersionGate) -> None:
        self._client = client
        self._gate = gate

    def fetch_root_certificate(self) -> x509.Certificate:
        """Fetch the upstream's root certificate used to sign access tokens.

        Raises:
            VersionIncompatibleError: If the upstream predates the endpoint.
        """
        if not self._gate.supports_root_certificate():
            raise VersionIncompatibleError(
                "upstream version does not provide the root certificate endpoint"
            )

        resp = self._client.get(ROOT_CERT_PATH)
        if resp.status_code != 200:
            message = error_message(resp)
            if resp.status_code == 401 and INVALID_TOKEN_EXPIRED.match(message):
                raise TokenExpiredError()
            logger.error(f"Root certificate request returned status {resp.status_code}")
            raise UpstreamRejectedError(
                f"could not get the certificate: HTTP response {message}",
                status_code=resp.status_code,
                body=resp.text,
            )

        try:
            der = base64.b64decode(resp.content.strip(), validate=True)
            return x509.load_der_x509_certificate(der)
        except (binascii.Error, ValueError) as e:
            logger.error(f"Error decoding root certificate: {e}")
            raise MalformedResponseError(f"could not decode root certificate: {e}") from e

    def decode(self, access_token: str, validate: bool = True) -> Mapping[str, Any]:
        """Return the raw claims of ``access_token``.

        When ``validate`` is set the RS256 signature is checked against the
        root certificate. Upstreams too old to serve the certificate are
        decoded without verification and a warning is logged. Expiry is
        never checked against the local clock.
        """
        certificate = None
        if validate:
            try:
                certificate = self.fetch_root_certificate()
            except VersionIncompatibleError:
                logger.warning(
                    "Outdated Artifactory, unable to retrieve root certificate; "
                    "skipping token signature validation"
                )

        try:
            if certificate is None:
                return jwt.decode(access_token, options={"verify_signature": False})

            header = jwt.get_unverified_header(access_token)
            if header.get("alg") not in ACCEPTED_SIGNING_ALGORITHMS:
                raise InvalidTokenError(
                    f"unexpected signing algorithm {header.get('alg')!r}"
                )
            return jwt.decode(
                access_token,
                certificate.public_key(),
                algorithms=ACCEPTED_SIGNING_ALGORITHMS,
                options={
                    "verify_exp": False,
                    "verify_nbf": False,
                    "verify_iat": False,
                    "verify_aud": False,
                },
            )
        except jwt.PyJWTError as e:
            raise InvalidTokenError(f"error parsing access token: {e}") from e

    def introspect(self, access_token: str, validate: bool = True) -> TokenClaims:
        """Decode ``access_token`` into :class:`TokenClaims`."""
        if not access_token:
            raise InvalidTokenError("empty access token not allowed")
        return claims_from_payload(self.decode(access_token, validate=validate))

    def ensure_active(self) -> None:
        """Ask the upstream about the client's own token.

        Raises:
            TokenExpiredError: If the upstream reports the token as expired.
        """
        logger.debug("Checking whether access token is still active")
        resp = self._client.get(ACCESS_TOKEN_SELF_PATH)
        if resp.status_code == 200:
            return
        message = error_message(resp)
        if resp.status_code == 401 and INVALID_TOKEN_EXPIRED.match(message):
            raise TokenExpiredError()
        logger.error(f"Token self lookup returned status {resp.status_code}")
        raise UpstreamRejectedError(
            f"could not get the token: HTTP response {message}",
            status_code=resp.status_code,
            body=resp.text,
        )
