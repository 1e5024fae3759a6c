# -*- coding: utf-8 -*-
"""Конфигурация: трёхзначный флаг согласия, валидация, запись в .env."""

import pytest

from src.config import Config, _env_bool, _env_int, parse_allow_updates
from src.core.config_manager import DEFAULTS, ConfigManager


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1", True),
        ("true", True),
        ("ON", True),
        ("0", False),
        ("no", False),
        ("_", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_allow_updates(raw, expected):
    assert parse_allow_updates(raw) is expected


def test_undecided_consent_counts_as_enabled(monkeypatch):
    monkeypatch.setattr(Config, "ALLOW_UPDATES", None)
    assert Config.updates_enabled() is True
    monkeypatch.setattr(Config, "ALLOW_UPDATES", False)
    assert Config.updates_enabled() is False


def test_env_helpers_clamp_and_fallback(monkeypatch):
    monkeypatch.setenv("BOTHOST_TEST_INT", "2")
    assert _env_int("BOTHOST_TEST_INT", 10800, minimum=5) == 5
    monkeypatch.setenv("BOTHOST_TEST_INT", "soon")
    assert _env_int("BOTHOST_TEST_INT", 10800, minimum=5) == 10800
    monkeypatch.delenv("BOTHOST_TEST_BOOL", raising=False)
    assert _env_bool("BOTHOST_TEST_BOOL", True) is True
    monkeypatch.setenv("BOTHOST_TEST_BOOL", "off")
    assert _env_bool("BOTHOST_TEST_BOOL", True) is False


def test_validate_requires_telegram_credentials(monkeypatch):
    monkeypatch.setattr(Config, "TELEGRAM_API_ID", 0)
    monkeypatch.setattr(Config, "TELEGRAM_API_HASH", "")

    errors = Config.validate()

    assert any("TELEGRAM_API_ID" in e for e in errors)
    assert any("TELEGRAM_API_HASH" in e for e in errors)


def test_missing_updater_settings_do_not_block_startup(monkeypatch):
    # Без репозитория отключается только апдейтер (ConfigError в build_update_monitor)
    monkeypatch.setattr(Config, "TELEGRAM_API_ID", 123)
    monkeypatch.setattr(Config, "TELEGRAM_API_HASH", "hash")
    monkeypatch.setattr(Config, "ALLOW_UPDATES", True)
    monkeypatch.setattr(Config, "UPDATE_REPO", "")
    monkeypatch.setattr(Config, "UPDATE_BRANCH", "")

    assert Config.validate() == []
    assert Config.is_valid()


def test_update_setting_persists_to_env(monkeypatch, tmp_path):
    monkeypatch.setattr(Config, "BASE_DIR", tmp_path)
    monkeypatch.setattr(Config, "ALLOW_UPDATES", None)
    (tmp_path / ".env").write_text("TELEGRAM_API_ID=1\nALLOW_UPDATES=_\n", encoding="utf-8")

    assert Config.update_setting("ALLOW_UPDATES", "1") is True

    assert Config.ALLOW_UPDATES is True
    lines = (tmp_path / ".env").read_text(encoding="utf-8").splitlines()
    assert lines == ["TELEGRAM_API_ID=1", "ALLOW_UPDATES=1"]


def test_update_setting_creates_env_when_missing(monkeypatch, tmp_path):
    monkeypatch.setattr(Config, "BASE_DIR", tmp_path)
    monkeypatch.setattr(Config, "BOT_PUBLIC", True)

    assert Config.update_setting("BOT_PUBLIC", "0") is True

    assert Config.BOT_PUBLIC is False
    assert "BOT_PUBLIC=0" in (tmp_path / ".env").read_text(encoding="utf-8")


def test_config_manager_defaults_and_persistence(tmp_path):
    path = tmp_path / "config.yaml"
    cm = ConfigManager(path=str(path))

    assert ".git/" in cm.get_list("updater.ignore_patterns")
    assert cm.get("plugins.dir") == "plugins"

    cm.set("updater.protected_patterns", ["config.yaml", "data/", "custom/"])
    cm2 = ConfigManager(path=str(path))
    assert cm2.get_list("updater.protected_patterns") == ["config.yaml", "data/", "custom/"]


def test_config_manager_falls_back_to_defaults_for_missing_keys(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("plugins:\n  dir: addons\n", encoding="utf-8")

    cm = ConfigManager(path=str(path))

    assert cm.get("plugins.dir") == "addons"
    assert cm.get_list("updater.core_patterns") == DEFAULTS["updater"]["core_patterns"]
    # Мутация результата не портит DEFAULTS
    cm.get_list("updater.core_patterns").append("x")
    assert "x" not in DEFAULTS["updater"]["core_patterns"]
