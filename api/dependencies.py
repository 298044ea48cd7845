"""
FastAPI dependencies.

One rotation store and one assignment dispatcher per process, built from the
environment on first use. Tests replace them through `app.dependency_overrides`.
"""

from __future__ import annotations

from functools import lru_cache

from repositories.memory_store import InMemoryRotationStore
from repositories.store import RotationStore
from services.assignment_dispatcher import AssignmentDispatcher
from settings import STORE_MEMORY, Settings, load_settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


@lru_cache(maxsize=1)
def get_store() -> RotationStore:
    settings = get_settings()
    if settings.rotation_store == STORE_MEMORY:
        return InMemoryRotationStore(lock_timeout_seconds=settings.lock_timeout_seconds)

    from repositories.client import get_supabase
    from repositories.supabase_store import SupabaseRotationStore

    return SupabaseRotationStore(get_supabase(), lock_timeout_ms=settings.lock_timeout_ms)


@lru_cache(maxsize=1)
def get_dispatcher() -> AssignmentDispatcher:
    settings = get_settings()
    return AssignmentDispatcher(
        get_store(),
        attempts=settings.retry_attempts,
        backoff_seconds=settings.retry_backoff_seconds,
    )


__all__ = ["get_dispatcher", "get_settings", "get_store"]
