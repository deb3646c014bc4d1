"""Tests for the TOML configuration loader."""

import pytest

from lichess_fetcher.config import DEFAULT_CUSTOM_SELECTORS, load_config


def test_defaults_apply_for_empty_file(tmp_path, monkeypatch):
    for name in ("SITE_ORIGIN", "NAVIGATION_TIMEOUT_MS", "BROWSER_HEADLESS", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "config.toml"
    path.write_text("")

    cfg = load_config(path)

    assert cfg.SITE_ORIGIN == "https://lichess.org"
    assert cfg.NAVIGATION_TIMEOUT_MS == 30000
    assert cfg.NAVIGATION_WAIT_UNTIL == "networkidle"
    assert cfg.BASIC_WAIT_MS == 3000
    assert cfg.ADVANCED_WAIT_MS == 5000
    assert cfg.TEXT_CAP == 500
    assert cfg.CUSTOM_SELECTORS == DEFAULT_CUSTOM_SELECTORS
    assert cfg.BROWSER_HEADLESS is True


def test_file_values_and_env_overrides(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    path.write_text(
        '[site]\norigin = "https://example.test/"\n'
        '[navigation]\nwait_until = "bogus"\ntimeout_ms = 1000\n'
        '[extraction]\ntext_cap = 10\n'
    )
    monkeypatch.setenv("NAVIGATION_TIMEOUT_MS", "2500")
    monkeypatch.setenv("BROWSER_HEADLESS", "false")
    monkeypatch.delenv("SITE_ORIGIN", raising=False)

    cfg = load_config(path)

    assert cfg.SITE_ORIGIN == "https://example.test"
    assert cfg.NAVIGATION_WAIT_UNTIL == "networkidle"
    assert cfg.NAVIGATION_TIMEOUT_MS == 2500
    assert cfg.BROWSER_HEADLESS is False
    assert cfg.TEXT_CAP == 10


def test_config_path_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "alt.toml"
    path.write_text('[logging]\nlevel = "debug"\n')
    monkeypatch.setenv("APP_CONFIG_FILE", str(path))
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    assert load_config().LOG_LEVEL == "DEBUG"


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.toml")
