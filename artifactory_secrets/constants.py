"""Fixed values shared across the engine."""

from __future__ import annotations

import re

__version__ = "1.0.0"

PRODUCT_ID = f"artifactory-secrets/{__version__}"

GRANT_TYPE_CLIENT_CREDENTIALS = "client_credentials"
GRANT_TYPE_REFRESH_TOKEN = "refresh_token"

DEFAULT_ADMIN_USERNAME = "admin-artifactory-secrets"
DEFAULT_ROTATION_DESCRIPTION = "Rotated access token for the artifactory-secrets engine"
DEFAULT_USER_SCOPE = "applied-permissions/user"

# Upstream endpoints
VERSION_PATH = "/artifactory/api/system/version"
USAGE_PATH = "/artifactory/api/system/usage"
LEGACY_TOKEN_PATH = "/artifactory/api/security/token"
LEGACY_REVOKE_PATH = "/artifactory/api/security/token/revoke"
ACCESS_TOKENS_PATH = "/access/api/v1/tokens"
ACCESS_TOKEN_SELF_PATH = "/access/api/v1/tokens/me"
ROOT_CERT_PATH = "/access/api/v1/cert/root"

# Storage keys
ADMIN_CONFIG_KEY = "config/admin"
USER_TOKEN_CONFIG_KEY = "config/user_token"
ROLES_PREFIX = "roles/"

INVALID_TOKEN_EXPIRED = re.compile(r".*Invalid token, expired.*")
TOKEN_VERIFICATION_EXPIRED = re.compile(r".*Token failed verification: expired.*")
GROUP_PERMISSION_SCOPE = re.compile(r"^applied-permissions/groups:[^,]+(,[^,]+)*$")

ACCEPTED_SIGNING_ALGORITHMS = ["RS256"]
