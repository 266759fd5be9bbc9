"""artifactory-secrets: issue, rotate and revoke Artifactory access tokens."""

from .constants import __version__
from .engine import ArtifactorySecretsEngine
from .errors import ArtifactorySecretsError, StaleCredentialError, TokenExpiredError
from .models import IssuanceRequest, IssuanceResponse, Lease, TokenClaims
from .persistence import get_repository
from .ttl import resolve as resolve_ttl
from .version import Capability, VersionGate

__all__ = [
    "ArtifactorySecretsEngine",
    "ArtifactorySecretsError",
    "Capability",
    "IssuanceRequest",
    "IssuanceResponse",
    "Lease",
    "StaleCredentialError",
    "TokenClaims",
    "TokenExpiredError",
    "VersionGate",
    "get_repository",
    "resolve_ttl",
    "__version__",
]
