"""Configuration — Gitter credentials, endpoints and bot settings.

Supports two modes:
1. Module-level constants (env-var driven, .env supported)
2. JSON config file at ~/.gitterbot/config.json (overrides the env defaults)
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from dotenv import load_dotenv

# Load .env from project root if present
load_dotenv()

# ── Gitter Settings ──

GITTER_TOKEN = os.getenv("GITTER_TOKEN", "")
GITTER_API_URL = os.getenv("GITTER_API_URL", "https://api.gitter.im/v1")
GITTER_FAYE_URL = os.getenv("GITTER_FAYE_URL", "https://ws.gitter.im/faye")

# ── Bot Settings ──

WORKSPACE_DIR = os.path.expanduser(os.getenv("GITTERBOT_WORKSPACE", "~/.gitterbot"))
LOG_LEVEL = os.getenv("GITTERBOT_LOG_LEVEL", "INFO")

_DEFAULT_HANDLERS = ["log", "ping"]

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class AppConfig:
    """Full application configuration loaded from config.json.

    Every field defaults to the env-driven value, so an empty file (or no
    file at all) gives a working config as long as GITTER_TOKEN is set.
    """

    token: str = field(default_factory=lambda: GITTER_TOKEN)
    api_url: str = field(default_factory=lambda: GITTER_API_URL)
    faye_url: str = field(default_factory=lambda: GITTER_FAYE_URL)
    workspace: str = field(default_factory=lambda: WORKSPACE_DIR)
    log_level: str = field(default_factory=lambda: LOG_LEVEL)
    handlers: list[str] = field(default_factory=lambda: list(_DEFAULT_HANDLERS))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        """Build config from a parsed JSON dict."""
        gitter = data.get("gitter", {})
        return cls(
            token=data.get("token", gitter.get("token", GITTER_TOKEN)),
            api_url=data.get("api_url", gitter.get("api_url", GITTER_API_URL)),
            faye_url=data.get("faye_url", gitter.get("faye_url", GITTER_FAYE_URL)),
            workspace=os.path.expanduser(data.get("workspace", WORKSPACE_DIR)),
            log_level=str(data.get("log_level", LOG_LEVEL)).upper(),
            handlers=list(data.get("handlers", _DEFAULT_HANDLERS)),
        )

    @classmethod
    def from_file(cls, path: str) -> AppConfig:
        """Load config from a JSON file. Returns defaults if file doesn't exist."""
        if not os.path.exists(path):
            return cls()

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def load(cls, workspace: str | None = None) -> AppConfig:
        """Load config from the standard location.

        Checks:
        1. GITTERBOT_CONFIG env var
        2. <workspace>/config.json
        3. Falls back to defaults
        """
        config_path = os.getenv("GITTERBOT_CONFIG")
        if config_path and os.path.exists(config_path):
            return cls.from_file(config_path)

        ws = workspace or WORKSPACE_DIR
        default_path = os.path.join(ws, "config.json")
        return cls.from_file(default_path)

    def validate(self) -> list[str]:
        """Validate the config and return a list of problems (empty = valid)."""
        from gitterbot.bus.handlers import HANDLERS

        problems: list[str] = []

        if not self.token:
            problems.append("No Gitter token (set GITTER_TOKEN or 'token' in config.json)")

        for name, url in (("api_url", self.api_url), ("faye_url", self.faye_url)):
            if not url.startswith(("http://", "https://")):
                problems.append(f"{name} must be an http(s) URL, got '{url}'")

        if self.log_level.upper() not in _LOG_LEVELS:
            problems.append(f"Unknown log_level '{self.log_level}'")

        for name in self.handlers:
            if name not in HANDLERS:
                problems.append(f"Unknown handler '{name}'")

        return problems

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level.upper(), logging.INFO)
