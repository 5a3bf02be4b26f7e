"""Environment-driven settings (server loads a .env file first via python-dotenv)."""

import logging
import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_HEARTBEAT_INTERVAL_SEC = 30.0
DEFAULT_MAX_PATTERN_DEPTH = 32
DEFAULT_LOG_LEVEL = "INFO"


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (ValueError, TypeError):
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (ValueError, TypeError):
        return default


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the hub and its server."""

    api_key: Optional[str] = None
    heartbeat_interval_sec: float = DEFAULT_HEARTBEAT_INTERVAL_SEC
    max_pattern_depth: int = DEFAULT_MAX_PATTERN_DEPTH
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            api_key=(os.environ.get("API_KEY") or "").strip() or None,
            heartbeat_interval_sec=_env_float("HEARTBEAT_INTERVAL_SEC", DEFAULT_HEARTBEAT_INTERVAL_SEC),
            max_pattern_depth=max(1, _env_int("PATSUB_MAX_PATTERN_DEPTH", DEFAULT_MAX_PATTERN_DEPTH)),
            log_level=(os.environ.get("PATSUB_LOG_LEVEL") or DEFAULT_LOG_LEVEL).strip().upper(),
        )

    @property
    def log_level_value(self) -> int:
        """Numeric logging level; unknown names fall back to INFO."""
        level = logging.getLevelName(self.log_level)
        return level if isinstance(level, int) else logging.INFO


def get_settings() -> Settings:
    """Read settings from the current environment."""
    return Settings.from_env()
