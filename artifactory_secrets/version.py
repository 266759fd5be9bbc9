"""Upstream version detection and capability checks."""

from __future__ import annotations

import logging
import re
import threading
from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel

from .client import ArtifactoryClient, decode_json, error_message
from .constants import TOKEN_VERIFICATION_EXPIRED, VERSION_PATH
from .errors import (
    ArtifactorySecretsError,
    TokenExpiredError,
    UpstreamRejectedError,
    VersionParseError,
)

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"^v?(\d+)\.(\d+)(?:\.(\d+))?(?:[-+].*)?$")


class SemanticVersion(BaseModel):
    """Semantic version with ``major.minor.patch`` components."""

    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, value: str) -> "SemanticVersion":
        """Parse a dotted version string such as ``7.21.1`` or ``7.41.x-rc1``.

        A missing patch component counts as zero; pre-release and build
        suffixes are ignored.
        """
        match = _VERSION_RE.match(value.strip()) if value else None
        if not match:
            raise VersionParseError(f"could not parse version {value!r}")
        major, minor, patch = match.groups()
        return cls(major=int(major), minor=int(minor), patch=int(patch or 0))

    def as_tuple(self) -> Tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __ge__(self, other: "SemanticVersion") -> bool:
        return self.as_tuple() >= other.as_tuple()

    def __lt__(self, other: "SemanticVersion") -> bool:
        return self.as_tuple() < other.as_tuple()

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return f"{self.major}.{self.minor}.{self.patch}"


class Capability(str, Enum):
    NEW_ACCESS_API = "new_access_api"
    ROOT_CERTIFICATE = "root_certificate"
    EXPIRING_TOKENS = "expiring_tokens"


# Minimum upstream versions; comparisons are inclusive.
CAPABILITY_THRESHOLDS: Dict[Capability, SemanticVersion] = {
    Capability.NEW_ACCESS_API: SemanticVersion.parse("7.21.1"),
    Capability.ROOT_CERTIFICATE: SemanticVersion.parse("7.12.0"),
    Capability.EXPIRING_TOKENS: SemanticVersion.parse("7.50.3"),
}


def is_supported(capability: Capability, reported_version: str) -> bool:
    """Return ``True`` if ``reported_version`` meets the capability threshold."""
    return SemanticVersion.parse(reported_version) >= CAPABILITY_THRESHOLDS[
        Capability(capability)
    ]


class VersionGate:
    """Answers capability questions for one upstream.

    The reported version is either injected or probed lazily (once) from the
    system version endpoint. Only successful probes are cached.
    """

    def __init__(self, client: ArtifactoryClient, version: Optional[str] = None) -> None:
        self._client = client
        self._version = version
        self._lock = threading.Lock()

    def fetch_version(self) -> str:
        """Query the upstream for its version string."""
        logger.debug("Fetching Artifactory version")
        resp = self._client.get(VERSION_PATH)
        if resp.status_code != 200:
            message = error_message(resp)
            logger.error(
                f"Version request returned status {resp.status_code}: {message}"
            )
            if resp.status_code == 401 and TOKEN_VERIFICATION_EXPIRED.match(message):
                raise TokenExpiredError()
            raise UpstreamRejectedError(
                f"could not get the system version: HTTP response {message}",
                status_code=resp.status_code,
                body=resp.text,
            )
        body = decode_json(resp, "system version")
        version = body.get("version") if isinstance(body, dict) else None
        if not version:
            raise VersionParseError("system version response carries no version")
        logger.debug(f"Found Artifactory version {version}")
        return version

    @property
    def version(self) -> str:
        with self._lock:
            if self._version is None:
                self._version = self.fetch_version()
            return self._version

    def rebind(self, client: ArtifactoryClient) -> "VersionGate":
        """Return a gate for ``client`` that keeps any version already probed."""
        with self._lock:
            return VersionGate(client, version=self._version)

    def invalidate(self) -> None:
        """Forget the cached version so the next check probes again."""
        with self._lock:
            self._version = None

    def supports(
        self, capability: Capability, reported_version: Optional[str] = None
    ) -> bool:
        """Check ``capability`` against ``reported_version`` or the upstream."""
        return is_supported(capability, reported_version or self.version)

    def use_new_access_api(self) -> bool:
        """Pick the protocol shape; defaults to the new API if probing fails."""
        try:
            return self.supports(Capability.NEW_ACCESS_API)
        except ArtifactorySecretsError as e:
            logger.warning(
                f"Failed to check Artifactory version, defaulting to the new access API: {e}"
            )
            return True

    def supports_root_certificate(self) -> bool:
        return self.supports(Capability.ROOT_CERTIFICATE)

    def supports_expiring_tokens(self) -> bool:
        return self.supports(Capability.EXPIRING_TOKENS)
