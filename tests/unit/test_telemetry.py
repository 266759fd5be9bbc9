import requests

from artifactory_secrets.constants import PRODUCT_ID, USAGE_PATH
from artifactory_secrets.telemetry import UsageReporter
from conftest import Resp


def test_usage_report_payload(client, session):
    session.add("POST", USAGE_PATH, Resp(200))

    thread = UsageReporter().send(client, "issue_role_token")
    thread.join(timeout=5)

    (call,) = session.calls
    assert call.json == {
        "productId": PRODUCT_ID,
        "features": [{"featureId": "issue_role_token"}],
    }


def test_usage_report_failures_are_swallowed(client, session, caplog):
    session.add("POST", USAGE_PATH, requests.ConnectionError("refused"))

    thread = UsageReporter().send(client, "rotate")
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert "Error sending usage report for rotate" in caplog.text


def test_usage_report_rejection_is_logged(client, session, caplog):
    session.add("POST", USAGE_PATH, Resp(404))

    UsageReporter().send(client, "rotate").join(timeout=5)

    assert "returned status 404" in caplog.text


def test_disabled_reporter_sends_nothing(client, session):
    assert UsageReporter(enabled=False).send(client, "rotate") is None
    assert session.calls == []
