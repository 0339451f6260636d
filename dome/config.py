"""Runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

_TRUTHY = {"1", "true", "yes", "on"}


def env(name: str, default: str | None = None) -> str:
    value = os.getenv(name, default)
    if value is None:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUTHY


@dataclass(slots=True)
class DomeConfig:
    token: str = ""
    starting_tokens: int = 500
    tokens_per_kill: int = 10
    admin_daily_tokens: int = 10000
    daily_refill: bool = True
    autosave_seconds: float = 300.0
    rate_limit: int = 5
    rate_window: float = 1.0
    wager_cooldown: float = 30.0
    catalog_dir: Path | None = None
    debug: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, *, require_token: bool = True) -> "DomeConfig":
        token = env("DISCORD_TOKEN") if require_token else os.getenv("DISCORD_TOKEN", "")
        starting_tokens = int(os.getenv("DOME_STARTING_TOKENS", "500"))
        tokens_per_kill = int(os.getenv("DOME_TOKENS_PER_KILL", "10"))
        admin_daily_tokens = int(os.getenv("DOME_ADMIN_DAILY_TOKENS", "10000"))
        daily_refill = env_flag("DOME_DAILY_REFILL", True)
        autosave_seconds = float(os.getenv("DOME_AUTOSAVE_SECONDS", "300"))
        rate_limit = int(os.getenv("DOME_RATE_LIMIT", "5"))
        rate_window = float(os.getenv("DOME_RATE_WINDOW", "1.0"))
        wager_cooldown = float(os.getenv("DOME_WAGER_COOLDOWN", "30"))
        catalog_value = os.getenv("DOME_CATALOG_DIR")
        catalog_dir = Path(catalog_value).expanduser() if catalog_value else None
        debug = env_flag("DOME_DEBUG")
        log_level = "DEBUG" if debug else os.getenv("DOME_LOG_LEVEL", "INFO").upper()

        starting_tokens = max(0, starting_tokens)
        tokens_per_kill = max(0, tokens_per_kill)
        admin_daily_tokens = max(0, admin_daily_tokens)
        autosave_seconds = max(1.0, autosave_seconds)
        rate_limit = max(1, rate_limit)
        if rate_window <= 0:
            rate_window = 1.0
        wager_cooldown = max(0.0, wager_cooldown)

        return cls(
            token=token,
            starting_tokens=starting_tokens,
            tokens_per_kill=tokens_per_kill,
            admin_daily_tokens=admin_daily_tokens,
            daily_refill=daily_refill,
            autosave_seconds=autosave_seconds,
            rate_limit=rate_limit,
            rate_window=rate_window,
            wager_cooldown=wager_cooldown,
            catalog_dir=catalog_dir,
            debug=debug,
            log_level=log_level,
        )

    def resolve_catalog_dir(self, data_root: Path) -> Path:
        return self.catalog_dir if self.catalog_dir is not None else data_root / "catalog"


__all__ = ["DomeConfig", "env", "env_flag"]
