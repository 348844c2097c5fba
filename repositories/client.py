"""
Supabase client initialization.

This module contains *only* the database connection setup. The client is built on
first use so that modules importing repositories (and the in-memory backend used
in development and tests) do not need credentials.

Environment variables required when the Supabase backend is used:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
- SUPABASE_TIMEOUT_SECONDS: optional PostgREST timeout (default 10)
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

from supabase import Client, ClientOptions, create_client  # type: ignore[import-not-found]

# Look for .env at the project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """Return the shared Supabase client, creating it on first call."""

    supabase_url = os.getenv("SUPABASE_URL")
    supabase_key = os.getenv("SUPABASE_KEY")

    if not supabase_url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not supabase_key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    timeout = float(os.getenv("SUPABASE_TIMEOUT_SECONDS", "10"))
    options = ClientOptions(postgrest_client_timeout=timeout)
    return create_client(supabase_url, supabase_key, options=options)


def raise_for_error(response: object, action: str) -> list:
    """Raise RuntimeError if a Supabase response carries an error; return its rows."""

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")
    return getattr(response, "data", None) or []


__all__ = ["get_supabase", "raise_for_error"]
