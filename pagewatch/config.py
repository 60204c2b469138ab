"""Session configuration: browser binary, timeouts, grace period.

Settings live in ~/.pagewatch/config.json under a "session" key and can be
overridden per run with environment variables:

    PAGEWATCH_CHROME          browser binary
    PAGEWATCH_HEADLESS        0 to show the window
    CDP_URL                   attach to a running browser instead of launching
    PAGEWATCH_WAIT_UNTIL      load | domcontentloaded | networkidle0 | networkidle2
    PAGEWATCH_NAV_TIMEOUT_MS  navigation timeout
    PAGEWATCH_GRACE_MS        settle time before teardown
    PAGEWATCH_CHROME_FLAGS    extra browser switches, comma-separated
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from loguru import logger

from pagewatch.core import LIFECYCLE_EVENTS

CONFIG_DIR = Path.home() / ".pagewatch"
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULT_WAIT_UNTIL = "networkidle2"


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load the config file, or return an empty config."""
    path = path or CONFIG_FILE
    if path.exists():
        try:
            data = json.loads(path.read_text())
            if isinstance(data, dict):
                return data
        except (json.JSONDecodeError, OSError):
            logger.warning("Ignoring unreadable config file {}", path)
    return {}


def _as_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() not in {"0", "false", "no", "off", ""}


def _ms(raw: Any) -> float:
    return float(raw) / 1000


@dataclass
class SessionConfig:
    """Everything a session needs besides the URL and the commands."""

    chrome_path: str | None = None
    headless: bool = True
    cdp_url: str | None = None
    wait_until: str = DEFAULT_WAIT_UNTIL
    navigation_timeout: float = 30.0
    protocol_timeout: float = 30.0
    launch_timeout: float = 30.0
    grace_period: float = 0.1
    extra_args: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.wait_until not in LIFECYCLE_EVENTS:
            logger.warning(
                "Unknown wait_until {!r}; using {}", self.wait_until, DEFAULT_WAIT_UNTIL
            )
            self.wait_until = DEFAULT_WAIT_UNTIL

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> SessionConfig:
        """Build from a dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning("Ignoring unknown session settings: {}", ", ".join(sorted(unknown)))
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def load(
        cls, path: Path | None = None, environ: Mapping[str, str] | None = None
    ) -> SessionConfig:
        """Defaults, then the config file's "session" section, then env vars."""
        env = os.environ if environ is None else environ
        settings: dict[str, Any] = dict(load_config(path).get("session") or {})

        if env.get("PAGEWATCH_CHROME"):
            settings["chrome_path"] = os.path.expanduser(env["PAGEWATCH_CHROME"])
        if "PAGEWATCH_HEADLESS" in env:
            settings["headless"] = env["PAGEWATCH_HEADLESS"]
        if env.get("CDP_URL"):
            settings["cdp_url"] = env["CDP_URL"]
        if env.get("PAGEWATCH_WAIT_UNTIL"):
            settings["wait_until"] = env["PAGEWATCH_WAIT_UNTIL"].strip().lower()
        for var, name in (
            ("PAGEWATCH_NAV_TIMEOUT_MS", "navigation_timeout"),
            ("PAGEWATCH_GRACE_MS", "grace_period"),
        ):
            if not env.get(var):
                continue
            try:
                settings[name] = _ms(env[var])
            except ValueError:
                logger.warning("Ignoring {}={!r}: not a number", var, env[var])
        if env.get("PAGEWATCH_CHROME_FLAGS"):
            settings["extra_args"] = [
                flag.strip() for flag in env["PAGEWATCH_CHROME_FLAGS"].split(",") if flag.strip()
            ]

        if "headless" in settings:
            settings["headless"] = _as_bool(settings["headless"])
        return cls.from_mapping(settings)
