"""Configuration from the environment (and an optional .env file)."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError

from .timer import FocusPolicy

ENV_PREFIX = "FOCUS_TIMER_"
DEFAULT_DB_PATH = Path.home() / ".focus-timer" / "profiles.db"

# env suffix -> FocusPolicy field
POLICY_ENV_FIELDS = {
    "FOCUS_MINUTES": "focus_minutes",
    "SHORT_BREAK_MINUTES": "short_break_minutes",
    "LONG_BREAK_MINUTES": "long_break_minutes",
    "SESSIONS_BEFORE_LONG_BREAK": "sessions_before_long_break",
    "BASE_POINTS": "base_points",
    "BONUS_POINTS": "bonus_points",
}


class ConfigError(Exception):
    """Raised when configuration values are missing or invalid."""


class Settings(BaseModel):
    policy: FocusPolicy = FocusPolicy()
    db_path: Path = DEFAULT_DB_PATH
    user_id: Optional[str] = None
    log_level: str = "INFO"


def _policy_from_env(env: Mapping[str, str]) -> FocusPolicy:
    overrides = {}
    for suffix, field_name in POLICY_ENV_FIELDS.items():
        raw = env.get(ENV_PREFIX + suffix)
        if raw is None or raw.strip() == "":
            continue
        try:
            overrides[field_name] = int(raw)
        except ValueError:
            raise ConfigError(f"{ENV_PREFIX}{suffix} must be an integer, got {raw!r}")
    try:
        return FocusPolicy(**overrides)
    except ValidationError as e:
        raise ConfigError(f"Invalid focus policy: {e}") from e


def load_settings(env_file: Optional[Path] = None, env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from ``env`` (defaults to os.environ after loading .env)."""
    if env is None:
        load_dotenv(env_file or Path.cwd() / ".env")
        env = os.environ

    db_path = env.get(ENV_PREFIX + "DB")
    return Settings(
        policy=_policy_from_env(env),
        db_path=Path(db_path).expanduser() if db_path else DEFAULT_DB_PATH,
        user_id=env.get(ENV_PREFIX + "USER") or None,
        log_level=env.get(ENV_PREFIX + "LOG_LEVEL", "INFO").upper(),
    )
