import pytest

from artifactory_secrets.constants import ACCESS_TOKENS_PATH, LEGACY_REVOKE_PATH
from artifactory_secrets.errors import UpstreamRejectedError
from artifactory_secrets.revoke import RevocationExecutor
from conftest import Resp


@pytest.mark.parametrize("status", [200, 204, 404, 410])
def test_revoke_succeeds_when_token_is_gone(client, gate, session, status):
    session.add("DELETE", f"{ACCESS_TOKENS_PATH}/abc", Resp(status))
    RevocationExecutor(client, gate).revoke("abc")
    assert len(session.calls) == 1


def test_revoke_twice_is_idempotent(client, gate, session):
    session.add("DELETE", f"{ACCESS_TOKENS_PATH}/abc", Resp(200), Resp(404))
    executor = RevocationExecutor(client, gate)
    executor.revoke("abc")
    executor.revoke("abc")


def test_revoke_failure_surfaces(client, gate, session):
    session.add("DELETE", f"{ACCESS_TOKENS_PATH}/abc", Resp(500, text="db down"))
    with pytest.raises(UpstreamRejectedError) as exc_info:
        RevocationExecutor(client, gate).revoke("abc")
    assert exc_info.value.status_code == 500
    assert exc_info.value.body == "db down"


def test_modern_revoke_requires_token_id(client, gate):
    with pytest.raises(ValueError):
        RevocationExecutor(client, gate).revoke("", access_token="tok")


def test_legacy_revoke_by_id_or_value(client, legacy_gate, session):
    session.add("POST", LEGACY_REVOKE_PATH, Resp(200))
    executor = RevocationExecutor(client, legacy_gate)

    executor.revoke("abc")
    executor.revoke("", access_token="raw-token")

    by_id, by_value = session.calls
    assert by_id.data == {"token_id": "abc"}
    assert by_value.data == {"token": "raw-token"}
