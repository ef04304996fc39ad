"""Tests for loading configuration from the environment."""

import logging
from pathlib import Path

import pytest

from userkv.config import configure_logging, load_config_from_env

CONFIG_VARIABLES = (
    "DATABASE_PATH",
    "LOGGING_LEVEL",
    "ROOT_PATH",
    "HOST",
    "PORT",
    "SHUTDOWN_GRACE_PERIOD",
    "LIST_BATCH_SIZE",
    "SEED_SAMPLE_USERS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Unset every config variable, restoring them after the test.

    Setting before deleting makes monkeypatch also remove values that a
    loaded .env file adds during the test.
    """
    for name in CONFIG_VARIABLES:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_defaults() -> None:
    config = load_config_from_env(None)

    assert config.database_path == "./db/userkv.db"
    assert config.host == "127.0.0.1"
    assert config.port == 8000
    assert config.shutdown_grace_period == 5
    assert config.list_batch_size == 100
    assert config.seed_sample_users is True


@pytest.mark.parametrize(("value", "port"), [("9000", 9000), ("", 8000)])
def test_port(monkeypatch: pytest.MonkeyPatch, value: str, port: int) -> None:
    monkeypatch.setenv("PORT", value)

    assert load_config_from_env(None).port == port


@pytest.mark.parametrize("value", ["abc", "80.5", "-1", "0", "70000"])
def test_malformed_port_fails_fast(monkeypatch: pytest.MonkeyPatch, value: str) -> None:
    monkeypatch.setenv("PORT", value)

    with pytest.raises(ValueError, match="PORT"):
        load_config_from_env(None)


def test_empty_grace_period_waits_indefinitely(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHUTDOWN_GRACE_PERIOD", "")

    assert load_config_from_env(None).shutdown_grace_period is None


@pytest.mark.parametrize(("value", "expected"), [("no", False), ("ON", True)])
def test_seed_flag(
    monkeypatch: pytest.MonkeyPatch,
    value: str,
    expected: bool,  # noqa: FBT001
) -> None:
    monkeypatch.setenv("SEED_SAMPLE_USERS", value)

    assert load_config_from_env(None).seed_sample_users is expected


def test_invalid_seed_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SEED_SAMPLE_USERS", "maybe")

    with pytest.raises(ValueError, match="SEED_SAMPLE_USERS"):
        load_config_from_env(None)


def test_env_file_is_loaded(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("PORT=8123\nDATABASE_PATH=:memory:\n")

    config = load_config_from_env(env_file)

    assert config.port == 8123
    assert config.database_path == ":memory:"


def test_invalid_logging_level_warns(caplog: pytest.LogCaptureFixture) -> None:
    config = load_config_from_env(None)
    config.logging_level = "chatty"

    with caplog.at_level(logging.WARNING):
        configure_logging(config)

    assert "Invalid log level: chatty" in caplog.text
