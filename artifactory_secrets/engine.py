"""Outward facing engine: configuration, roles, issuance, rotation, revocation."""

from __future__ import annotations

import hashlib
import logging
import threading
from typing import Any, Dict, Mapping, Optional, Tuple

import requests

from . import ttl as ttl_resolver
from .client import ArtifactoryClient
from .config import EngineConfig, load_config
from .constants import (
    ADMIN_CONFIG_KEY,
    DEFAULT_USER_SCOPE,
    GRANT_TYPE_CLIENT_CREDENTIALS,
    GROUP_PERMISSION_SCOPE,
    ROLES_PREFIX,
    USER_TOKEN_CONFIG_KEY,
)
from .errors import (
    ArtifactorySecretsError,
    ConfigurationMissingError,
    InvalidConfigurationError,
    InvalidScopeError,
)
from .introspect import TokenIntrospector
from .issuer import TokenIssuer
from .locks import RWLock
from .models import (
    AdminConfiguration,
    IssuanceRequest,
    Lease,
    RoleDefinition,
    RotationResult,
    TokenClaims,
    UserTokenConfiguration,
)
from .persistence import ConfigRepository, get_repository
from .refresh import RefreshCoordinator
from .revoke import RevocationExecutor
from .rotation import RotationCoordinator
from .telemetry import UsageReporter
from .version import VersionGate

logger = logging.getLogger(__name__)

# One gate per (url, credential); admin and user calls interleave.
MAX_CACHED_GATES = 32


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()


def validate_scope_override(scope: str) -> None:
    """Reject scope overrides that are not group scopes."""
    if not GROUP_PERMISSION_SCOPE.match(scope):
        raise InvalidScopeError(
            "provided scope is invalid; expected "
            "'applied-permissions/groups:<group-name>[,<group-name>...]'"
        )


def user_token_key(username: Optional[str] = None) -> str:
    return f"{USER_TOKEN_CONFIG_KEY}/{username}" if username else USER_TOKEN_CONFIG_KEY


class ArtifactorySecretsEngine:
    """Issues, rotates and revokes Artifactory access tokens.

    ``config_lock`` guards the admin and user-token configuration,
    ``roles_lock`` guards role and per-user entity records. Issuance only
    reads the admin configuration; rotation and configuration writes take it
    exclusively.
    """

    def __init__(
        self,
        repository: Optional[ConfigRepository] = None,
        config: Optional[EngineConfig] = None,
        session: Optional[requests.Session] = None,
        reporter: Optional[UsageReporter] = None,
    ) -> None:
        self.config = config or load_config()
        self.repository = repository or get_repository(config=self.config)
        self.session = session or requests.Session()
        self.reporter = reporter or UsageReporter(enabled=self.config.usage_reporting)
        self.config_lock = RWLock()
        self.roles_lock = RWLock()
        self._gates: Dict[Tuple[str, str], VersionGate] = {}
        self._gate_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Helpers
    def _client(self, admin: AdminConfiguration) -> ArtifactoryClient:
        return ArtifactoryClient(
            admin.url,
            admin.access_token,
            session=self.session,
            timeout=self.config.http.timeout,
        )

    def _user_client(
        self, admin: AdminConfiguration, user_config: UserTokenConfiguration
    ) -> ArtifactoryClient:
        client = self._client(admin)
        if user_config.url.rstrip("/") == client.url:
            return client
        return ArtifactoryClient(
            user_config.url,
            user_config.access_token,
            session=self.session,
            timeout=self.config.http.timeout,
        )

    def _gate_for(self, client: ArtifactoryClient) -> VersionGate:
        key = (client.url, client.access_token)
        with self._gate_lock:
            gate = self._gates.get(key)
            if gate is None:
                if len(self._gates) >= MAX_CACHED_GATES:
                    self._gates.clear()
                gate = self._gates[key] = VersionGate(client)
            return gate

    def _reset_gate(self) -> None:
        with self._gate_lock:
            self._gates.clear()

    def _load_admin(self, required: bool = True) -> Optional[AdminConfiguration]:
        record = self.repository.get(ADMIN_CONFIG_KEY)
        if record is None:
            if required:
                raise ConfigurationMissingError()
            return None
        admin = AdminConfiguration.model_validate(record)
        if required and not admin.access_token:
            raise ConfigurationMissingError("missing access token")
        return admin

    def _token_info(self, client: ArtifactoryClient, token: str) -> Dict[str, Any]:
        if not token:
            return {}
        try:
            claims = TokenIntrospector(client, self._gate_for(client)).introspect(
                token, validate=self.config.validate_signatures
            )
        except ArtifactorySecretsError as e:
            logger.warning(f"Error parsing access token: {e}")
            return {}
        info: Dict[str, Any] = {
            "token_id": claims.token_id,
            "username": claims.username,
            "scope": claims.scope,
        }
        if claims.expires:
            info["exp"] = claims.expires
        return info

    # ------------------------------------------------------------------
    # Admin configuration
    def configure_admin(
        self,
        url: Optional[str] = None,
        access_token: Optional[str] = None,
        use_expiring_tokens: Optional[bool] = None,
        force_revocable: Optional[bool] = None,
        default_ttl: Optional[int] = None,
        max_ttl: Optional[int] = None,
        revoke_on_delete: Optional[bool] = None,
    ) -> AdminConfiguration:
        """Create or update the admin configuration.

        Changing ``url`` clears the stored token unless a new one is given
        alongside it. The upstream is probed before anything is stored.
        """
        with self.config_lock.write():
            admin = self._load_admin(required=False) or AdminConfiguration()

            if url is not None:
                admin.url = url
                admin.access_token = ""
            if access_token is not None:
                admin.access_token = access_token
            if use_expiring_tokens is not None:
                admin.use_expiring_tokens = use_expiring_tokens
            if force_revocable is not None:
                admin.force_revocable = force_revocable
            if default_ttl is not None:
                admin.default_ttl = default_ttl
            if max_ttl is not None:
                admin.max_ttl = max_ttl
            if revoke_on_delete is not None:
                admin.revoke_on_delete = revoke_on_delete

            if not admin.access_token:
                raise InvalidConfigurationError("access_token is required")
            if not admin.url:
                raise InvalidConfigurationError("url is required")
            if admin.max_ttl > 0 and admin.default_ttl > admin.max_ttl:
                raise InvalidConfigurationError("default_ttl cannot be longer than max_ttl")

            self._reset_gate()
            client = self._client(admin)
            version = self._gate_for(client).version
            logger.info(f"Configured Artifactory {admin.url} (version {version})")

            self.repository.put(ADMIN_CONFIG_KEY, admin.model_dump())
            self.reporter.send(client, "configure_admin")
            return admin

    def read_admin_config(self) -> Dict[str, Any]:
        """Describe the admin configuration without revealing the token."""
        with self.config_lock.read():
            admin = self._load_admin()
            client = self._client(admin)
            gate = self._gate_for(client)
            self.reporter.send(client, "read_admin_config")

            data: Dict[str, Any] = {
                "access_token_sha256": sha256_hex(admin.access_token),
                "url": admin.url,
                "default_ttl": admin.default_ttl,
                "max_ttl": admin.max_ttl,
                "revoke_on_delete": admin.revoke_on_delete,
            }
            try:
                data["version"] = gate.version
                if gate.supports_expiring_tokens():
                    data["use_expiring_tokens"] = admin.use_expiring_tokens
            except ArtifactorySecretsError as e:
                logger.warning(f"Unable to get Artifactory version: {e}")
            data.update(self._token_info(client, admin.access_token))
            return data

    def delete_admin_config(self) -> None:
        """Remove the admin configuration, revoking the token if requested."""
        with self.config_lock.write():
            admin = self._load_admin()
            client = self._client(admin)
            gate = self._gate_for(client)
            self.reporter.send(client, "delete_admin_config")

            if admin.revoke_on_delete:
                claims = TokenIntrospector(client, gate).introspect(
                    admin.access_token, validate=self.config.validate_signatures
                )
                RevocationExecutor(client, gate).revoke(
                    claims.token_id, access_token=admin.access_token
                )
            self.repository.delete(ADMIN_CONFIG_KEY)
            self._reset_gate()

    # ------------------------------------------------------------------
    # Roles
    def write_role(self, name: str, **fields: Any) -> RoleDefinition:
        with self.config_lock.read(), self.roles_lock.write():
            admin = self._load_admin()
            if not name:
                raise InvalidConfigurationError("missing role")

            role = RoleDefinition.model_validate(fields)
            if not role.scope:
                raise InvalidConfigurationError("missing scope")
            if role.grant_type == GRANT_TYPE_CLIENT_CREDENTIALS and not role.username:
                raise InvalidConfigurationError("missing username")
            if role.max_ttl > 0 and role.default_ttl > role.max_ttl:
                raise InvalidConfigurationError("default_ttl cannot be longer than max_ttl")
            if admin.max_ttl > 0 and role.max_ttl > admin.max_ttl:
                raise InvalidConfigurationError(
                    "role max_ttl cannot be longer than backend max_ttl"
                )
            if admin.max_ttl > 0 and role.default_ttl > admin.max_ttl:
                raise InvalidConfigurationError(
                    "role default_ttl cannot be longer than backend max_ttl"
                )

            self.repository.put(f"{ROLES_PREFIX}{name}", role.model_dump())
            logger.info(f"Stored role {name}")
            return role

    def read_role(self, name: str) -> Optional[RoleDefinition]:
        with self.roles_lock.read():
            record = self.repository.get(f"{ROLES_PREFIX}{name}")
            return RoleDefinition.model_validate(record) if record is not None else None

    def list_roles(self) -> list[str]:
        with self.roles_lock.read():
            return self.repository.list(ROLES_PREFIX)

    def delete_role(self, name: str) -> None:
        with self.roles_lock.write():
            self.repository.delete(f"{ROLES_PREFIX}{name}")

    # ------------------------------------------------------------------
    # Issuance
    def issue_role_token(self, role_name: str, ttl: int = 0, max_ttl: int = 0) -> Lease:
        """Issue a token for ``role_name`` with the admin credential."""
        with self.config_lock.read(), self.roles_lock.read():
            admin = self._load_admin()
            record = self.repository.get(f"{ROLES_PREFIX}{role_name}")
            if record is None:
                raise InvalidConfigurationError(f"no such role {role_name}")
            role = RoleDefinition.model_validate(record)

            resolved = ttl_resolver.resolve(
                ttl,
                max_ttl,
                role.default_ttl,
                role.max_ttl,
                admin.default_ttl,
                admin.max_ttl,
                self.config.system.max_ttl,
                system_default_ttl=self.config.system.default_ttl,
                entity_label="role",
            )
            request = IssuanceRequest(
                grant_type=role.grant_type,
                username=role.username,
                scope=role.scope,
                audience=role.audience,
                description=role.description,
                refreshable=role.refreshable,
                include_reference_token=role.include_reference_token,
                ttl=resolved.ttl,
                max_ttl=resolved.max_ttl,
                use_expiring_tokens=admin.use_expiring_tokens,
                force_revocable=admin.force_revocable,
            )

            client = self._client(admin)
            self.reporter.send(client, "issue_role_token")
            resp = TokenIssuer(client, self._gate_for(client)).issue(request)

        logger.info(f"Issued token {resp.token_id or '(unknown id)'} for role {role_name}")
        return Lease(
            data={
                "access_token": resp.access_token,
                "role": role_name,
                "scope": resp.scope,
                "refreshable": bool(resp.refresh_token),
                "expires_in": resp.expires_in,
                "token_id": resp.token_id,
                "username": role.username,
                "reference_token": resp.reference_token,
            },
            internal_data={
                "access_token": resp.access_token,
                "refresh_token": resp.refresh_token,
                "token_id": resp.token_id,
            },
            ttl=resolved.ttl,
            max_ttl=resolved.max_ttl,
            renewable=bool(resp.refresh_token),
            warnings=resolved.warnings,
        )

    # ------------------------------------------------------------------
    # User tokens
    def _load_user_config(
        self, admin: AdminConfiguration, username: Optional[str]
    ) -> Tuple[str, UserTokenConfiguration]:
        """Return the record key and config for ``username``.

        A per-user record wins over the global one; empty url and token fall
        back to the admin configuration.
        """
        key = user_token_key(username)
        record = self.repository.get(key)
        if record is None and username:
            global_record = self.repository.get(USER_TOKEN_CONFIG_KEY)
            if global_record is not None:
                key, record = USER_TOKEN_CONFIG_KEY, global_record
        user_config = UserTokenConfiguration.model_validate(record or {})
        if not user_config.url:
            user_config.url = admin.url
        if not user_config.access_token:
            user_config.access_token = admin.access_token
        return key, user_config

    def configure_user_token(
        self, username: Optional[str] = None, **fields: Any
    ) -> UserTokenConfiguration:
        """Store user token settings for ``username`` (or for every user)."""
        with self.config_lock.write(), self.roles_lock.write():
            admin = self._load_admin()
            key = user_token_key(username)
            record = self.repository.get(key) or {}
            if "use_expiring_tokens" not in fields and "use_expiring_tokens" not in record:
                fields["use_expiring_tokens"] = admin.use_expiring_tokens
            record.update({k: v for k, v in fields.items() if v is not None})

            user_config = UserTokenConfiguration.model_validate(record)
            if not user_config.url:
                user_config.url = admin.url
            if not user_config.access_token:
                user_config.access_token = admin.access_token
            if user_config.max_ttl > 0 and user_config.default_ttl > user_config.max_ttl:
                raise InvalidConfigurationError("default_ttl cannot be longer than max_ttl")

            self.repository.put(key, user_config.model_dump())
            logger.info(f"Saved user token configuration at {key}")
            self.reporter.send(self._client(admin), "configure_user_token")
            return user_config

    def read_user_token_config(self, username: Optional[str] = None) -> Dict[str, Any]:
        with self.config_lock.read(), self.roles_lock.read():
            admin = self._load_admin()
            _, user_config = self._load_user_config(admin, username)
            client = self._client(admin)
            self.reporter.send(client, "read_user_token_config")

            data: Dict[str, Any] = {
                "access_token_sha256": sha256_hex(user_config.access_token),
                "refresh_token_sha256": sha256_hex(user_config.refresh_token),
                "audience": user_config.audience,
                "refreshable": user_config.refreshable,
                "include_reference_token": user_config.include_reference_token,
                "use_expiring_tokens": user_config.use_expiring_tokens,
                "default_ttl": user_config.default_ttl,
                "max_ttl": user_config.max_ttl,
                "default_description": user_config.default_description,
            }
            data.update(self._token_info(client, user_config.access_token))
            return data

    def issue_user_token(
        self,
        username: str,
        scope: Optional[str] = None,
        description: Optional[str] = None,
        audience: Optional[str] = None,
        refreshable: Optional[bool] = None,
        include_reference_token: Optional[bool] = None,
        use_expiring_tokens: Optional[bool] = None,
        force_revocable: Optional[bool] = None,
        ttl: int = 0,
        max_ttl: int = 0,
    ) -> Lease:
        """Issue a token for ``username`` using the delegated user credential.

        An expired delegated credential is refreshed once from its stored
        refresh token and the issuance retried.
        """
        if not username:
            raise InvalidConfigurationError("missing username")
        if scope:
            validate_scope_override(scope)

        # Entity records may be rewritten by a refresh, hence the write lock.
        with self.config_lock.read(), self.roles_lock.write():
            admin = self._load_admin()
            key, user_config = self._load_user_config(admin, username)
            if not user_config.access_token:
                raise ConfigurationMissingError("missing access token")

            resolved = ttl_resolver.resolve(
                ttl,
                max_ttl,
                user_config.default_ttl,
                user_config.max_ttl,
                admin.default_ttl,
                admin.max_ttl,
                self.config.system.max_ttl,
                system_default_ttl=self.config.system.default_ttl,
                entity_label="user",
            )
            request = IssuanceRequest(
                grant_type=GRANT_TYPE_CLIENT_CREDENTIALS,
                username=username,
                scope=scope or DEFAULT_USER_SCOPE,
                audience=user_config.audience if audience is None else audience,
                description=(
                    user_config.default_description if description is None else description
                ),
                refreshable=user_config.refreshable if refreshable is None else refreshable,
                include_reference_token=(
                    user_config.include_reference_token
                    if include_reference_token is None
                    else include_reference_token
                ),
                ttl=resolved.ttl,
                max_ttl=resolved.max_ttl,
                use_expiring_tokens=(
                    user_config.use_expiring_tokens
                    if use_expiring_tokens is None
                    else use_expiring_tokens
                ),
                force_revocable=(
                    user_config.force_revocable if force_revocable is None else force_revocable
                ),
            )

            client = self._user_client(admin, user_config)
            gate = self._gate_for(client)
            self.reporter.send(client, "issue_user_token")
            resp = RefreshCoordinator(self.repository, client, gate).issue(
                key, user_config, request
            )

        logger.info(f"Issued user token {resp.token_id or '(unknown id)'} for {username}")
        secret = {
            "access_token": resp.access_token,
            "refresh_token": resp.refresh_token,
            "expires_in": resp.expires_in,
            "scope": resp.scope,
            "token_id": resp.token_id,
            "username": username,
            "reference_token": resp.reference_token,
        }
        return Lease(
            data={**secret, "description": request.description},
            internal_data=secret,
            ttl=resolved.ttl,
            max_ttl=resolved.max_ttl,
            renewable=bool(resp.refresh_token),
            warnings=resolved.warnings,
        )

    def refresh_user_token(self, username: Optional[str] = None) -> bool:
        """Refresh the delegated credential if the upstream reports it expired."""
        with self.config_lock.read(), self.roles_lock.write():
            admin = self._load_admin()
            key, user_config = self._load_user_config(admin, username)
            client = self._user_client(admin, user_config)
            return RefreshCoordinator(
                self.repository, client, self._gate_for(client)
            ).refresh_if_expired(key, user_config)

    # ------------------------------------------------------------------
    # Rotation, revocation, introspection
    def rotate(
        self, username: Optional[str] = None, description: Optional[str] = None
    ) -> RotationResult:
        """Replace the admin credential; see :class:`RotationCoordinator`."""
        with self.config_lock.write():
            admin = self._load_admin()
            client = self._client(admin)
            self.reporter.send(client, "rotate")
            try:
                return RotationCoordinator(
                    self.repository,
                    client,
                    self._gate_for(client),
                    validate_signatures=self.config.validate_signatures,
                ).rotate(username=username, description=description)
            finally:
                self._reset_gate()

    def revoke_lease(self, internal_data: Mapping[str, Any]) -> None:
        """Revoke the token described by a lease's internal data."""
        with self.config_lock.read():
            admin = self._load_admin()
            client = self._client(admin)
            RevocationExecutor(client, self._gate_for(client)).revoke(
                str(internal_data.get("token_id") or ""),
                access_token=internal_data.get("access_token") or None,
            )

    def introspect(self, token: str, validate: Optional[bool] = None) -> TokenClaims:
        with self.config_lock.read():
            admin = self._load_admin()
            client = self._client(admin)
            return TokenIntrospector(client, self._gate_for(client)).introspect(
                token,
                validate=self.config.validate_signatures if validate is None else validate,
            )
