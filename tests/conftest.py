import base64
import datetime
import json
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit

import jwt
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from artifactory_secrets.client import ArtifactoryClient
from artifactory_secrets.config import EngineConfig
from artifactory_secrets.constants import (
    ADMIN_CONFIG_KEY,
    ROOT_CERT_PATH,
    VERSION_PATH,
)
from artifactory_secrets.engine import ArtifactorySecretsEngine
from artifactory_secrets.models import AdminConfiguration
from artifactory_secrets.persistence import InMemoryConfigRepository
from artifactory_secrets.telemetry import UsageReporter
from artifactory_secrets.version import VersionGate

BASE_URL = "https://jfrog.example.com"
HMAC_SECRET = "a-shared-secret-that-is-long-enough-for-hs256"


class Resp:
    def __init__(self, status_code: int = 200, body: Any = None, text: str | None = None):
        self.status_code = status_code
        if text is None:
            text = json.dumps(body) if body is not None else ""
        self.text = text
        self.content = text.encode()

    def json(self):
        return json.loads(self.text)


def error_body(status_code: int, message: str) -> Resp:
    return Resp(
        status_code,
        {"errors": [{"code": "ERROR", "message": message}]},
    )


@dataclass
class Call:
    method: str
    path: str
    kwargs: dict = field(default_factory=dict)
    host: str = ""

    @property
    def json(self):
        return self.kwargs.get("json")

    @property
    def data(self):
        return self.kwargs.get("data")

    @property
    def authorization(self):
        return self.kwargs["headers"]["Authorization"]


class FakeSession:
    """Stand-in for ``requests.Session`` routing on (method, path).

    Queued responses are consumed in order; the last one is repeated. A
    callable response is called with the recorded :class:`Call`.
    """

    def __init__(self, base_url: str = BASE_URL):
        self.base_url = base_url
        self.routes: dict[tuple[str, str], list[Any]] = {}
        self.calls: list[Call] = []

    def add(self, method: str, path: str, *responses: Any) -> "FakeSession":
        self.routes.setdefault((method, path), []).extend(responses)
        return self

    def request(self, method, url, timeout=None, **kwargs):
        call = Call(method, urlsplit(url).path, kwargs, host=urlsplit(url).netloc)
        self.calls.append(call)
        queue = self.routes.get((method, call.path))
        if not queue:
            raise AssertionError(f"unexpected request {method} {call.path}")
        resp = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(resp):
            resp = resp(call)
        if isinstance(resp, Exception):
            raise resp
        return resp

    def calls_to(self, method: str, path: str) -> list[Call]:
        return [c for c in self.calls if c.method == method and c.path == path]


@pytest.fixture(scope="session")
def signing_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def root_certificate(signing_key):
    """Base64 DER certificate as served by the root certificate endpoint."""
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "jfrog-access")])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(signing_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(signing_key, hashes.SHA256())
    )
    return base64.b64encode(cert.public_bytes(serialization.Encoding.DER)).decode()


@pytest.fixture
def make_token(signing_key):
    def _make(
        jti: str = "token-1",
        username: str = "admin",
        scope: str = "applied-permissions/admin",
        exp: Any = None,
        key: Any = None,
        algorithm: str = "RS256",
    ) -> str:
        claims = {
            "jti": jti,
            "sub": f"jfac@01abc/users/{username}",
            "scp": scope,
        }
        if exp is not None:
            claims["exp"] = exp
        if algorithm.startswith("HS"):
            return jwt.encode(claims, HMAC_SECRET, algorithm=algorithm)
        return jwt.encode(claims, key or signing_key, algorithm=algorithm)

    return _make


@pytest.fixture
def session():
    return FakeSession()


def version_resp(version: str = "7.77.0") -> Resp:
    return Resp(200, {"version": version, "revision": "77700900"})


@pytest.fixture
def client(session):
    return ArtifactoryClient(BASE_URL, "admin-token", session=session)


@pytest.fixture
def gate(client):
    return VersionGate(client, version="7.77.0")


@pytest.fixture
def legacy_gate(client):
    return VersionGate(client, version="7.20.0")


@pytest.fixture
def repository():
    return InMemoryConfigRepository()


@pytest.fixture
def engine_config():
    return EngineConfig()


@pytest.fixture
def engine(repository, session, engine_config):
    return ArtifactorySecretsEngine(
        repository=repository,
        config=engine_config,
        session=session,
        reporter=UsageReporter(enabled=False),
    )


@pytest.fixture
def admin_token(make_token):
    return make_token(jti="admin-jti", username="admin")


@pytest.fixture
def configured_engine(engine, repository, session, admin_token, root_certificate):
    """Engine with an admin configuration and a modern upstream."""
    repository.put(
        ADMIN_CONFIG_KEY,
        AdminConfiguration(url=BASE_URL, access_token=admin_token).model_dump(),
    )
    session.add("GET", VERSION_PATH, version_resp())
    session.add("GET", ROOT_CERT_PATH, Resp(200, text=root_certificate))
    return engine
