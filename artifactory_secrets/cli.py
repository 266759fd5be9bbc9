"""Command line interface for the artifactory-secrets engine."""

from __future__ import annotations

import json
import logging
from functools import wraps
from typing import Any, Callable, Optional

import typer

from artifactory_secrets import ArtifactorySecretsEngine, get_repository
from artifactory_secrets.config import load_config
from artifactory_secrets.errors import ArtifactorySecretsError

app = typer.Typer(help="CLI for the artifactory-secrets engine")

# Command groups
config_app = typer.Typer(help="Commands for managing engine configuration")
role_app = typer.Typer(help="Commands for managing roles")
token_app = typer.Typer(help="Commands for issuing and inspecting tokens")

app.add_typer(config_app, name="config")
app.add_typer(role_app, name="role")
app.add_typer(token_app, name="token")

_engine_instance: ArtifactorySecretsEngine | None = None


def get_engine() -> ArtifactorySecretsEngine:
    """Return the engine shared by all commands of this process."""
    global _engine_instance
    if _engine_instance is None:
        config = load_config()
        _engine_instance = ArtifactorySecretsEngine(
            repository=get_repository(config=config), config=config
        )
    return _engine_instance


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, sort_keys=True, default=str))


def _handle_errors(func: Callable[..., None]) -> Callable[..., None]:
    @wraps(func)
    def _wrapper(*args: Any, **kwargs: Any) -> None:
        try:
            func(*args, **kwargs)
        except ArtifactorySecretsError as e:
            typer.secho(f"Error: {e}", fg=typer.colors.RED)
            raise typer.Exit(code=1)

    return _wrapper


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v")) -> None:
    """artifactory-secrets CLI entry point."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


@config_app.command("admin")
@_handle_errors
def config_admin(
    url: Optional[str] = typer.Option(None, help="Base URL of the Artifactory instance"),
    access_token: Optional[str] = typer.Option(None, help="Admin access token"),
    use_expiring_tokens: Optional[bool] = typer.Option(None),
    force_revocable: Optional[bool] = typer.Option(None),
    default_ttl: Optional[int] = typer.Option(None, help="Seconds"),
    max_ttl: Optional[int] = typer.Option(None, help="Seconds"),
    revoke_on_delete: Optional[bool] = typer.Option(None),
) -> None:
    """
    Create or update the admin configuration.

    Example:
        artifactory-secrets config admin --url https://jfrog.example.com --access-token $TOKEN
    """
    get_engine().configure_admin(
        url=url,
        access_token=access_token,
        use_expiring_tokens=use_expiring_tokens,
        force_revocable=force_revocable,
        default_ttl=default_ttl,
        max_ttl=max_ttl,
        revoke_on_delete=revoke_on_delete,
    )
    typer.echo("Admin configuration stored")


@config_app.command("show")
@_handle_errors
def config_show() -> None:
    """Show the admin configuration; the token is only shown as a sha256 hash."""
    _echo_json(get_engine().read_admin_config())


@config_app.command("delete")
@_handle_errors
def config_delete() -> None:
    """Delete the admin configuration."""
    get_engine().delete_admin_config()
    typer.echo("Admin configuration deleted")


@config_app.command("rotate")
@_handle_errors
def config_rotate(
    username: Optional[str] = typer.Option(None, help="Username for the new token"),
    description: Optional[str] = typer.Option(None, help="Description for the new token"),
) -> None:
    """
    Rotate the admin access token.

    A new token is created and stored first, then the old one is revoked.
    """
    result = get_engine().rotate(username=username, description=description)
    _echo_json(result.model_dump(mode="json"))


@config_app.command("user-token")
@_handle_errors
def config_user_token(
    username: Optional[str] = typer.Argument(None, help="Omit to configure all users"),
    access_token: Optional[str] = typer.Option(None),
    refresh_token: Optional[str] = typer.Option(None),
    audience: Optional[str] = typer.Option(None),
    refreshable: Optional[bool] = typer.Option(None),
    include_reference_token: Optional[bool] = typer.Option(None),
    use_expiring_tokens: Optional[bool] = typer.Option(None),
    default_ttl: Optional[int] = typer.Option(None, help="Seconds"),
    max_ttl: Optional[int] = typer.Option(None, help="Seconds"),
    default_description: Optional[str] = typer.Option(None),
    show: bool = typer.Option(False, "--show", help="Print the stored configuration"),
) -> None:
    """Configure (or with --show, inspect) user token settings."""
    engine = get_engine()
    if not show:
        engine.configure_user_token(
            username,
            access_token=access_token,
            refresh_token=refresh_token,
            audience=audience,
            refreshable=refreshable,
            include_reference_token=include_reference_token,
            use_expiring_tokens=use_expiring_tokens,
            default_ttl=default_ttl,
            max_ttl=max_ttl,
            default_description=default_description,
        )
    _echo_json(engine.read_user_token_config(username))


@role_app.command("write")
@_handle_errors
def role_write(
    name: str,
    scope: str = typer.Option(..., help="Token scope"),
    username: str = typer.Option("", help="Token subject username"),
    grant_type: str = typer.Option("client_credentials"),
    audience: str = typer.Option(""),
    description: str = typer.Option(""),
    refreshable: bool = typer.Option(False),
    include_reference_token: bool = typer.Option(False),
    default_ttl: int = typer.Option(0, help="Seconds"),
    max_ttl: int = typer.Option(0, help="Seconds"),
) -> None:
    """Create or replace a role."""
    get_engine().write_role(
        name,
        scope=scope,
        username=username,
        grant_type=grant_type,
        audience=audience,
        description=description,
        refreshable=refreshable,
        include_reference_token=include_reference_token,
        default_ttl=default_ttl,
        max_ttl=max_ttl,
    )
    typer.echo(f"Role {name} stored")


@role_app.command("show")
def role_show(name: str) -> None:
    """Show a role definition."""
    role = get_engine().read_role(name)
    if role is None:
        typer.echo("Role not found")
        raise typer.Exit(code=1)
    _echo_json(role.model_dump())


@role_app.command("list")
def role_list() -> None:
    """List role names."""
    names = get_engine().list_roles()
    if not names:
        typer.echo("No roles found")
        return
    for name in names:
        typer.echo(name)


@role_app.command("delete")
def role_delete(name: str) -> None:
    """Delete a role."""
    get_engine().delete_role(name)
    typer.echo(f"Role {name} deleted")


@token_app.command("issue")
@_handle_errors
def token_issue(
    role: str,
    ttl: int = typer.Option(0, help="Seconds"),
    max_ttl: int = typer.Option(0, help="Seconds"),
) -> None:
    """Issue an access token for a role."""
    _echo_json(get_engine().issue_role_token(role, ttl=ttl, max_ttl=max_ttl).model_dump())


@token_app.command("user")
@_handle_errors
def token_user(
    username: str,
    scope: Optional[str] = typer.Option(
        None, help="Group scope override: applied-permissions/groups:<name>[,<name>...]"
    ),
    description: Optional[str] = typer.Option(None),
    audience: Optional[str] = typer.Option(None),
    refreshable: Optional[bool] = typer.Option(None),
    include_reference_token: Optional[bool] = typer.Option(None),
    use_expiring_tokens: Optional[bool] = typer.Option(None),
    force_revocable: Optional[bool] = typer.Option(None),
    ttl: int = typer.Option(0, help="Seconds"),
    max_ttl: int = typer.Option(0, help="Seconds"),
) -> None:
    """Issue an access token for a user with the delegated user credential."""
    lease = get_engine().issue_user_token(
        username,
        scope=scope,
        description=description,
        audience=audience,
        refreshable=refreshable,
        include_reference_token=include_reference_token,
        use_expiring_tokens=use_expiring_tokens,
        force_revocable=force_revocable,
        ttl=ttl,
        max_ttl=max_ttl,
    )
    _echo_json(lease.model_dump())


@token_app.command("introspect")
@_handle_errors
def token_introspect(
    token: str,
    validate: Optional[bool] = typer.Option(None, help="Verify the token signature"),
) -> None:
    """Decode an access token into its claims."""
    _echo_json(get_engine().introspect(token, validate=validate).model_dump())


@token_app.command("revoke")
@_handle_errors
def token_revoke(
    token_id: str,
    access_token: Optional[str] = typer.Option(None, help="Token value for legacy upstreams"),
) -> None:
    """Revoke an access token by id."""
    get_engine().revoke_lease({"token_id": token_id, "access_token": access_token})
    typer.echo(f"Token {token_id} revoked")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
