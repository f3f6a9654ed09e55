"""Unit tests for .env loading in the startup script."""

import logging
import os

from loyalty_relay.utils.env import load_env_file


def _unset(monkeypatch, name):
    # setenv first so monkeypatch restores the original even after the .env writes it
    monkeypatch.setenv(name, "placeholder")
    monkeypatch.delenv(name)


def test_loads_file_without_overriding(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("SHOPIFY_WEBHOOK_SECRET=from-file\nLOYALTEEZ_BRAND_ID=0xfile\n")
    _unset(monkeypatch, "SHOPIFY_WEBHOOK_SECRET")
    monkeypatch.setenv("LOYALTEEZ_BRAND_ID", "0xreal")

    missing = load_env_file(str(env_file))

    assert missing == []
    assert os.environ["SHOPIFY_WEBHOOK_SECRET"] == "from-file"
    assert os.environ["LOYALTEEZ_BRAND_ID"] == "0xreal"


def test_reports_missing_secret_without_values(tmp_path, monkeypatch, caplog):
    env_file = tmp_path / ".env"
    env_file.write_text("LOYALTEEZ_API_URL=https://rewards.example\n")
    _unset(monkeypatch, "SHOPIFY_WEBHOOK_SECRET")
    _unset(monkeypatch, "LOYALTEEZ_API_URL")

    with caplog.at_level(logging.INFO):
        missing = load_env_file(str(env_file))

    assert missing == ["SHOPIFY_WEBHOOK_SECRET"]
    assert "Required variables not set: SHOPIFY_WEBHOOK_SECRET" in caplog.text
    assert "https://rewards.example" not in caplog.text


def test_missing_file_is_not_an_error(tmp_path, monkeypatch):
    monkeypatch.setenv("SHOPIFY_WEBHOOK_SECRET", "already-set")

    assert load_env_file(str(tmp_path / "absent.env")) == []
