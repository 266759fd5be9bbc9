"""Exception hierarchy for the artifactory-secrets engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import RotationResult


class ArtifactorySecretsError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationMissingError(ArtifactorySecretsError):
    """No admin configuration (or no admin access token) is stored."""

    def __init__(self, message: str = "backend not configured") -> None:
        super().__init__(message)


class InvalidConfigurationError(ArtifactorySecretsError, ValueError):
    """A configuration or role definition failed validation."""


class VersionParseError(ArtifactorySecretsError, ValueError):
    """A version string could not be parsed as ``major.minor.patch``."""


class VersionIncompatibleError(ArtifactorySecretsError):
    """The upstream is older than the version a feature requires."""


class TokenExpiredError(ArtifactorySecretsError):
    """The upstream rejected the bearer token because it has expired."""

    def __init__(self, message: str = "token has expired") -> None:
        super().__init__(message)


class UpstreamRejectedError(ArtifactorySecretsError):
    """The upstream answered with a non-success status."""

    def __init__(self, message: str, status_code: int, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class UpstreamUnavailableError(ArtifactorySecretsError):
    """The upstream could not be reached at all."""


class MalformedResponseError(ArtifactorySecretsError):
    """An upstream response body could not be decoded."""


class InvalidScopeError(ArtifactorySecretsError, ValueError):
    """A client supplied scope override is not an allowed group scope."""


class InvalidTokenError(ArtifactorySecretsError):
    """An access token could not be decoded or failed signature checks."""


class StaleCredentialError(ArtifactorySecretsError):
    """Rotation stored a new credential but could not revoke the old one.

    The new credential is live and persisted; the old token identified by
    ``token_id`` still needs to be cleaned up by hand.
    """

    def __init__(
        self,
        token_id: str,
        result: "RotationResult",
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            f"rotated access token but could not revoke previous token {token_id}: {cause}"
        )
        self.token_id = token_id
        self.result = result
        self.cause = cause
