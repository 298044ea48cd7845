"""
Supabase client initialization.

This module contains *only* the database connection setup. The client is
created on first use so that the in-memory store (ROTATION_STORE=memory) can
run without Supabase credentials.

Environment variables required for the supabase store:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

from typing import Optional

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]

from settings import Settings, load_settings

_client: Optional[Client] = None


def create_supabase_client(settings: Settings) -> Client:
    if not settings.supabase_url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not settings.supabase_key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return create_client(settings.supabase_url, settings.supabase_key)


def get_supabase() -> Client:
    """Shared Supabase client for the process."""

    global _client
    if _client is None:
        _client = create_supabase_client(load_settings())
    return _client


__all__ = ["create_supabase_client", "get_supabase"]
