from __future__ import annotations

import json
from pathlib import Path

from pagewatch.config import SessionConfig, load_config


def test_defaults(tmp_path: Path) -> None:
    config = SessionConfig.load(tmp_path / "missing.json", environ={})

    assert config == SessionConfig()
    assert config.headless is True
    assert config.wait_until == "networkidle2"
    assert config.grace_period == 0.1
    assert config.cdp_url is None


def test_file_then_env(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"session": {"headless": False, "grace_period": 0.5, "wait_until": "load"}}))

    config = SessionConfig.load(
        path,
        environ={
            "PAGEWATCH_GRACE_MS": "250",
            "PAGEWATCH_NAV_TIMEOUT_MS": "5000",
            "CDP_URL": "http://127.0.0.1:9333",
            "PAGEWATCH_CHROME_FLAGS": "--lang=en, --mute-audio,",
        },
    )

    assert config.headless is False
    assert config.wait_until == "load"
    assert config.grace_period == 0.25
    assert config.navigation_timeout == 5.0
    assert config.cdp_url == "http://127.0.0.1:9333"
    assert config.extra_args == ["--lang=en", "--mute-audio"]


def test_headless_env_strings(tmp_path: Path) -> None:
    assert SessionConfig.load(tmp_path / "none", environ={"PAGEWATCH_HEADLESS": "0"}).headless is False
    assert SessionConfig.load(tmp_path / "none", environ={"PAGEWATCH_HEADLESS": "true"}).headless is True


def test_invalid_values_fall_back(tmp_path: Path) -> None:
    config = SessionConfig.load(
        tmp_path / "none",
        environ={"PAGEWATCH_WAIT_UNTIL": "eventually", "PAGEWATCH_GRACE_MS": "soon", "PAGEWATCH_NAV_TIMEOUT_MS": "1000"},
    )

    assert config.wait_until == "networkidle2"
    assert config.grace_period == 0.1
    assert config.navigation_timeout == 1.0


def test_unreadable_file_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json")

    assert load_config(path) == {}
    assert SessionConfig.load(path, environ={}) == SessionConfig()


def test_unknown_keys_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"session": {"colour": "blue", "launch_timeout": 5}}))

    assert SessionConfig.load(path, environ={}).launch_timeout == 5
