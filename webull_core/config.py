"""
Client Configuration

Provides:
- WebullConfig dataclass with defaults for every tunable
- YAML loading (``webull`` section) and in-place YAML updates
- Environment-variable builder (WEBULL_* variables)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields as dc_fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from loguru import logger

from .signing import generate_device_id

DEFAULT_BASE_URL = "https://api.webull.com"


@dataclass
class WebullConfig:
    """
    Settings for one client instance.

    The base URL is always passed explicitly; nothing in the package reads a
    module-level default at request time.
    """

    api_key: str = ""
    api_secret: str = ""
    device_id: str = ""
    base_url: str = DEFAULT_BASE_URL
    paper_trading: bool = False
    paper_base_url: str = ""

    # HTTP
    timeout: float = 30.0
    requests_per_minute: int = 60
    cache_ttl: float = 60.0
    cache_max_entries: int = 1000

    # Streaming
    heartbeat_interval: float = 30.0
    max_reconnect_attempts: int = 5
    reconnect_delay: float = 5.0

    # Token lifecycle
    auto_refresh_token: bool = False
    token_refresh_buffer: float = 300.0

    def __post_init__(self) -> None:
        if not self.device_id:
            self.device_id = generate_device_id()
        self.base_url = self.base_url.rstrip("/")
        self.paper_base_url = self.paper_base_url.rstrip("/")

    def validate(self) -> None:
        """Raise ValueError if the configuration cannot be used."""
        missing = [name for name in ("api_key", "api_secret") if not getattr(self, name)]
        if missing:
            raise ValueError(f"Missing required config keys: {missing}")
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL: {self.base_url!r}")
        for name in ("timeout", "requests_per_minute", "cache_max_entries", "heartbeat_interval"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.max_reconnect_attempts < 0 or self.reconnect_delay < 0:
            raise ValueError("reconnect settings must be non-negative")

    @property
    def api_url(self) -> str:
        """REST root in use: the paper server when paper trading and one is configured."""
        if self.paper_trading and self.paper_base_url:
            return self.paper_base_url
        return self.base_url

    @property
    def ws_url(self) -> str:
        """Streaming endpoint derived from the REST root."""
        return f"{self.api_url.replace('http', 'ws', 1)}/ws"

    def with_paper_trading(self, enabled: bool = True) -> "WebullConfig":
        return replace(self, paper_trading=enabled)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WebullConfig":
        """Build from a plain dict, ignoring unknown keys."""
        known = {f.name for f in dc_fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})

    def update_from_yaml(self, path: Union[str, Path], section: str = "webull") -> None:
        """Load settings from YAML and update this instance in-place."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        known = {f.name for f in dc_fields(self)}
        for key, value in (data.get(section) or {}).items():
            if key in known:
                setattr(self, key, value)
        self.base_url = self.base_url.rstrip("/")
        self.paper_base_url = self.paper_base_url.rstrip("/")
        logger.info(f"Config updated from {path}")

    def __repr__(self) -> str:
        masked_key = f"{self.api_key[:4]}***" if self.api_key else ""
        return (
            f"WebullConfig(api_key={masked_key!r}, base_url={self.base_url!r}, "
            f"paper_trading={self.paper_trading}, device_id={self.device_id!r})"
        )


def load_config(path: Union[str, Path], section: str = "webull") -> WebullConfig:
    """
    Load WebullConfig from a YAML file.

    Args:
        path: YAML file path.
        section: Top-level key holding the client settings.

    Returns:
        WebullConfig with file values over defaults.

    Raises:
        FileNotFoundError: If path does not exist.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    config = WebullConfig.from_dict(data.get(section) or {})
    logger.info(f"Loaded config from {path}")
    return config


_ENV_CASTS = {
    "timeout": float,
    "requests_per_minute": int,
    "cache_ttl": float,
    "cache_max_entries": int,
    "heartbeat_interval": float,
    "max_reconnect_attempts": int,
    "reconnect_delay": float,
    "token_refresh_buffer": float,
}

_TRUTHY = {"1", "true", "yes", "on"}


def build_config_from_env(
    prefix: str = "WEBULL_",
    environ: Optional[Dict[str, str]] = None,
) -> WebullConfig:
    """
    Build WebullConfig from environment variables.

    Each field maps to ``<prefix><FIELD_NAME>``, e.g. WEBULL_API_KEY,
    WEBULL_PAPER_TRADING=true, WEBULL_TIMEOUT=10.
    """
    env = os.environ if environ is None else environ
    data: Dict[str, Any] = {}
    for f in dc_fields(WebullConfig):
        raw = env.get(f"{prefix}{f.name.upper()}")
        if raw is None or raw == "":
            continue
        if f.name in ("paper_trading", "auto_refresh_token"):
            data[f.name] = raw.strip().lower() in _TRUTHY
        elif f.name in _ENV_CASTS:
            try:
                data[f.name] = _ENV_CASTS[f.name](raw)
            except ValueError as e:
                raise ValueError(f"Invalid value for {prefix}{f.name.upper()}: {raw!r}") from e
        else:
            data[f.name] = raw
    return WebullConfig(**data)
