"""Tests for configuration loading and credential resolution."""

import pytest
from google.auth.credentials import AnonymousCredentials

from pdum.cloud.auth import resolve_credentials
from pdum.cloud.config import ClientConfig, get_config_dir, load_named_config
from pdum.cloud.types.exceptions import AuthError


def test_from_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "project: my-project\n"
        "timeout: 5\n"
        "scopes:\n"
        "  - https://www.googleapis.com/auth/pubsub\n"
        "endpoints:\n"
        "  pubsub: http://localhost:8085/\n"
    )

    config = ClientConfig.from_file(path)

    assert config.project == "my-project"
    assert config.timeout == 5
    assert config.scopes == ("https://www.googleapis.com/auth/pubsub",)
    assert config.endpoint_for("pubsub", default="https://x", emulator_env="NOPE") == ("http://localhost:8085", False)


def test_from_file_rejects_unknown_keys(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("project: p\nretries: 3\n")

    with pytest.raises(ValueError, match="retries"):
        ClientConfig.from_file(path)


def test_invalid_timeouts():
    with pytest.raises(ValueError):
        ClientConfig(timeout=0)
    with pytest.raises(ValueError):
        ClientConfig(connect_timeout=-1)


def test_named_config(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    directory = get_config_dir("work")
    directory.mkdir(parents=True)
    (directory / "config.yaml").write_text("project: work-project\n")

    assert directory == tmp_path / ".config" / "pdum_cloud" / "work"
    assert load_named_config("work").project == "work-project"


def test_emulator_endpoint(monkeypatch):
    monkeypatch.setenv("PUBSUB_EMULATOR_HOST", "localhost:8085")
    config = ClientConfig()

    assert config.endpoint_for("pubsub", default="https://x", emulator_env="PUBSUB_EMULATOR_HOST") == (
        "http://localhost:8085",
        True,
    )
    assert config.replace(endpoint="https://override").endpoint_for(
        "pubsub", default="https://x", emulator_env="PUBSUB_EMULATOR_HOST"
    ) == ("https://override", False)


def test_emulator_uses_anonymous_credentials():
    credentials, project = resolve_credentials(ClientConfig(), ["scope"], emulator=True)

    assert isinstance(credentials, AnonymousCredentials)
    assert project is None


def test_explicit_credentials_win(credentials):
    resolved, _ = resolve_credentials(ClientConfig(credentials=credentials), ["scope"], emulator=True)

    assert resolved is credentials


def test_bad_key_file_is_an_auth_error(tmp_path):
    path = tmp_path / "key.json"
    path.write_text("{}")

    with pytest.raises(AuthError):
        resolve_credentials(ClientConfig(credentials_file=str(path)), ["scope"])
