"""Tests for configuration loading."""

from artifactory_secrets.config import load_config


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
validate_signatures: false
http:
  timeout: 5
system:
  default_ttl: 3600
  max_ttl: 86400
"""
    )
    monkeypatch.setenv("ARTIFACTORY_SECRETS_CONFIG", str(config_path))
    monkeypatch.delenv("ARTIFACTORY_SECRETS_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    config = load_config()
    assert config.validate_signatures is False
    assert config.usage_reporting is True
    assert config.http.timeout == 5
    assert config.system.default_ttl == 3600
    assert config.system.max_ttl == 86400
    assert config.database_url is None


def test_database_url_env_override(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("database_url: sqlite:///from-file.db\n")
    monkeypatch.setenv("ARTIFACTORY_SECRETS_DATABASE_URL", "sqlite:///from-env.db")

    config = load_config(str(config_path))
    assert config.database_url == "sqlite:///from-env.db"


def test_missing_file_gives_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("ARTIFACTORY_SECRETS_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    config = load_config(str(tmp_path / "absent.yaml"))
    assert config.validate_signatures is True
    assert config.system.max_ttl == 0
