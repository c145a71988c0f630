"""Tests for environment-driven configuration."""

import os
from pathlib import Path

import pytest

from multisend.config import load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # .env loading writes to os.environ directly; keep it off the real one
    monkeypatch.setattr(os, "environ", dict(os.environ))
    for name in ("MULTISEND_OWNER", "MULTISEND_NETWORK", "MULTISEND_REGISTRY",
                 "MULTISEND_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_defaults(tmp_path):
    config = load_config(tmp_path / ".env")
    assert config.owner is None
    assert config.network == "finney"
    assert config.registry_path == Path("multisend_registry.json")
    assert config.log_level == "INFO"


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("MULTISEND_OWNER", "5Grw")
    monkeypatch.setenv("MULTISEND_NETWORK", "Test")
    monkeypatch.setenv("MULTISEND_REGISTRY", str(tmp_path / "reg.json"))

    config = load_config(tmp_path / ".env")

    assert config.owner == "5Grw"
    assert config.network == "test"
    assert config.registry_path == tmp_path / "reg.json"


def test_dotenv_does_not_override(monkeypatch, tmp_path):
    dotenv = tmp_path / ".env"
    dotenv.write_text(
        "# comment\nMULTISEND_OWNER='from_file'\nMULTISEND_NETWORK=local\nnot a pair\n"
    )
    monkeypatch.setenv("MULTISEND_NETWORK", "test")

    config = load_config(dotenv)

    assert config.owner == "from_file"
    assert config.network == "test"


def test_dotenv_inline_comment_and_export(tmp_path):
    dotenv = tmp_path / ".env"
    dotenv.write_text("MULTISEND_NETWORK=test  # testnet\nexport MULTISEND_OWNER=5Grw\n")

    config = load_config(dotenv)

    assert config.network == "test"
    assert config.owner == "5Grw"


def test_invalid_network(monkeypatch, tmp_path):
    monkeypatch.setenv("MULTISEND_NETWORK", "mainnet")
    with pytest.raises(RuntimeError, match="MULTISEND_NETWORK"):
        load_config(tmp_path / ".env")


def test_invalid_log_level(monkeypatch, tmp_path):
    monkeypatch.setenv("MULTISEND_LOG_LEVEL", "LOUD")
    with pytest.raises(RuntimeError, match="MULTISEND_LOG_LEVEL"):
        load_config(tmp_path / ".env")
