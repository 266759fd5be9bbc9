"""Tests for configuration repository backends."""

import pytest

import artifactory_secrets.persistence as persistence
from artifactory_secrets.config import EngineConfig
from artifactory_secrets.persistence import (
    InMemoryConfigRepository,
    SQLiteConfigRepository,
    get_repository,
)


@pytest.fixture(params=["memory", "sqlite"])
def repo(request, tmp_path):
    if request.param == "memory":
        yield InMemoryConfigRepository()
    else:
        repo = SQLiteConfigRepository(tmp_path / "state.db")
        yield repo
        repo.close()


def test_put_get_delete(repo):
    assert repo.get("config/admin") is None
    repo.put("config/admin", {"url": "https://a", "max_ttl": 10})
    repo.put("config/admin", {"url": "https://b", "max_ttl": 20})
    assert repo.get("config/admin") == {"url": "https://b", "max_ttl": 20}

    repo.delete("config/admin")
    repo.delete("config/admin")
    assert repo.get("config/admin") is None


def test_list_strips_prefix(repo):
    repo.put("roles/reader", {})
    repo.put("roles/deployer", {})
    repo.put("config/admin", {})
    assert repo.list("roles/") == ["deployer", "reader"]


def test_records_are_copies(repo):
    record = {"scope": "a"}
    repo.put("roles/r", record)
    record["scope"] = "b"
    fetched = repo.get("roles/r")
    fetched["scope"] = "c"
    assert repo.get("roles/r") == {"scope": "a"}


def test_sqlite_survives_reopen(tmp_path):
    path = tmp_path / "state.db"
    first = SQLiteConfigRepository(path)
    first.put("config/admin", {"url": "https://a"})
    first.close()

    second = SQLiteConfigRepository(path)
    assert second.get("config/admin") == {"url": "https://a"}
    second.close()


def test_get_repository_selects_backend(tmp_path, monkeypatch):
    monkeypatch.delenv("ARTIFACTORY_SECRETS_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setattr(persistence, "_repository_instance", None)

    assert isinstance(get_repository(config=EngineConfig()), InMemoryConfigRepository)

    repo = get_repository(f"sqlite://{tmp_path / 'state.db'}")
    assert isinstance(repo, SQLiteConfigRepository)
    assert get_repository() is repo
    repo.close()

    with pytest.raises(ValueError):
        get_repository("postgresql://localhost/secrets")
