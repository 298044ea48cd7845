"""
Environment-based configuration.

Values are read from the process environment after loading the `.env` file at
the project root (same convention as the Supabase client setup).

Environment variables:
- ROTATION_STORE: "supabase" (default) or "memory"
- SUPABASE_URL / SUPABASE_KEY: required for the supabase store
- ROTATION_LOCK_TIMEOUT_MS: bounded lock wait for the atomic units (default 3000)
- ASSIGNMENT_RETRY_ATTEMPTS: background assignment attempts on contention (default 3)
- ASSIGNMENT_RETRY_BACKOFF_SECONDS: base backoff between attempts (default 0.2)
- LOG_LEVEL: root log level for the API process (default INFO)
- CORS_ALLOW_ORIGINS: comma separated origins (default "*")
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)

STORE_SUPABASE = "supabase"
STORE_MEMORY = "memory"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be a number, got {raw!r}")


@dataclass(frozen=True, slots=True)
class Settings:
    rotation_store: str = STORE_SUPABASE
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    lock_timeout_ms: int = 3000
    retry_attempts: int = 3
    retry_backoff_seconds: float = 0.2
    log_level: str = "INFO"
    cors_allow_origins: tuple = ("*",)

    def __post_init__(self) -> None:
        if self.rotation_store not in (STORE_SUPABASE, STORE_MEMORY):
            raise RuntimeError(
                f"ROTATION_STORE must be '{STORE_SUPABASE}' or '{STORE_MEMORY}', "
                f"got {self.rotation_store!r}"
            )
        if self.lock_timeout_ms <= 0:
            raise RuntimeError("ROTATION_LOCK_TIMEOUT_MS must be positive")
        if self.retry_attempts < 1:
            raise RuntimeError("ASSIGNMENT_RETRY_ATTEMPTS must be at least 1")

    @property
    def lock_timeout_seconds(self) -> float:
        return self.lock_timeout_ms / 1000.0


def _origins(raw: Optional[str]) -> List[str]:
    if not raw:
        return ["*"]
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def load_settings() -> Settings:
    return Settings(
        rotation_store=os.getenv("ROTATION_STORE", STORE_SUPABASE).strip().lower(),
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_key=os.getenv("SUPABASE_KEY"),
        lock_timeout_ms=_int_env("ROTATION_LOCK_TIMEOUT_MS", 3000),
        retry_attempts=_int_env("ASSIGNMENT_RETRY_ATTEMPTS", 3),
        retry_backoff_seconds=_float_env("ASSIGNMENT_RETRY_BACKOFF_SECONDS", 0.2),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        cors_allow_origins=tuple(_origins(os.getenv("CORS_ALLOW_ORIGINS"))),
    )


__all__ = ["STORE_MEMORY", "STORE_SUPABASE", "Settings", "load_settings"]
