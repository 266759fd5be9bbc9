"""Tests for access token decoding and signature validation."""

from decimal import Decimal

import pytest

from artifactory_secrets.constants import ACCESS_TOKEN_SELF_PATH, ROOT_CERT_PATH
from artifactory_secrets.errors import (
    InvalidTokenError,
    MalformedResponseError,
    TokenExpiredError,
    UpstreamRejectedError,
)
from artifactory_secrets.introspect import (
    TokenIntrospector,
    claims_from_payload,
    coerce_timestamp,
)
from artifactory_secrets.version import VersionGate
from conftest import Resp, error_body


def test_username_keeps_everything_after_users_segment():
    claims = claims_from_payload(
        {"jti": "abc", "sub": "jfac@xyz/users/admin/extra", "scp": "applied-permissions/admin"}
    )
    assert claims.token_id == "abc"
    assert claims.username == "admin/extra"
    assert claims.scope == "applied-permissions/admin"
    assert claims.expires is None


@pytest.mark.parametrize(
    "value, expected",
    [
        (1700000000, 1700000000),
        (1700000000.0, 1700000000),
        (Decimal("1700000000.9"), 1700000000),
        ("1700000000", 1700000000),
        ("soon", None),
        (True, None),
        (None, None),
    ],
)
def test_coerce_timestamp(value, expected):
    assert coerce_timestamp(value) == expected


def test_missing_token_id_is_rejected():
    with pytest.raises(InvalidTokenError):
        claims_from_payload({"sub": "jfac@xyz/users/admin"})


def test_introspect_verifies_rs256_signature(client, gate, session, root_certificate, make_token):
    session.add("GET", ROOT_CERT_PATH, Resp(200, text=root_certificate))
    token = make_token(jti="t-1", username="deployer", exp=1700000000.0)

    claims = TokenIntrospector(client, gate).introspect(token)

    assert claims.token_id == "t-1"
    assert claims.username == "deployer"
    assert claims.expires == 1700000000
    assert len(session.calls_to("GET", ROOT_CERT_PATH)) == 1


def test_non_rs256_token_fails_validation(client, gate, session, root_certificate, make_token):
    session.add("GET", ROOT_CERT_PATH, Resp(200, text=root_certificate))
    token = make_token(algorithm="HS256")

    with pytest.raises(InvalidTokenError, match="signing algorithm"):
        TokenIntrospector(client, gate).introspect(token)


def test_token_signed_by_another_key_fails(
    client, gate, session, root_certificate, make_token, other_key
):
    session.add("GET", ROOT_CERT_PATH, Resp(200, text=root_certificate))
    token = make_token(key=other_key)

    with pytest.raises(InvalidTokenError):
        TokenIntrospector(client, gate).introspect(token)


def test_outdated_upstream_decodes_without_verification(client, session, make_token):
    gate = VersionGate(client, version="7.11.0")
    token = make_token(jti="old", algorithm="HS256")

    claims = TokenIntrospector(client, gate).introspect(token)

    assert claims.token_id == "old"
    assert session.calls == []


def test_validate_false_skips_certificate(client, gate, session, make_token):
    claims = TokenIntrospector(client, gate).introspect(make_token(jti="x"), validate=False)
    assert claims.token_id == "x"
    assert session.calls == []


def test_garbage_token_is_invalid(client, gate):
    with pytest.raises(InvalidTokenError):
        TokenIntrospector(client, gate).introspect("not-a-jwt", validate=False)


def test_root_certificate_errors(client, gate, session):
    session.add(
        "GET",
        ROOT_CERT_PATH,
        Resp(500, text="internal"),
        Resp(200, text="%%% not base64 %%%"),
    )
    introspector = TokenIntrospector(client, gate)

    with pytest.raises(UpstreamRejectedError) as exc_info:
        introspector.fetch_root_certificate()
    assert exc_info.value.status_code == 500

    with pytest.raises(MalformedResponseError):
        introspector.fetch_root_certificate()


def test_root_certificate_with_expired_token(client, gate, session):
    session.add("GET", ROOT_CERT_PATH, error_body(401, "Invalid token, expired"))
    with pytest.raises(TokenExpiredError):
        TokenIntrospector(client, gate).fetch_root_certificate()


def test_ensure_active(client, gate, session):
    session.add(
        "GET",
        ACCESS_TOKEN_SELF_PATH,
        Resp(200, {"token_id": "abc"}),
        error_body(401, "Invalid token, expired"),
        error_body(403, "Forbidden"),
    )
    introspector = TokenIntrospector(client, gate)

    introspector.ensure_active()
    with pytest.raises(TokenExpiredError):
        introspector.ensure_active()
    with pytest.raises(UpstreamRejectedError):
        introspector.ensure_active()
