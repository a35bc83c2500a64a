"""
Supabase client initialization.

This module contains *only* the connection setup and the settings shared by
the repository modules. The client is created on first use so that importing
a repository never requires credentials.

Environment variables:
- SUPABASE_URL: Supabase project URL (required)
- SUPABASE_KEY: Supabase API key used for table/RPC access (required)
- SUPABASE_ANON_KEY: bearer key for edge functions (defaults to SUPABASE_KEY)
- EDGE_FUNCTION_TIMEOUT: edge-function request timeout in seconds (default 10)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, List, Mapping, Optional

from dotenv import load_dotenv
from postgrest.exceptions import APIError
from supabase import Client, create_client  # type: ignore[import-not-found]

# Load environment variables from the project's .env file
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

_client: Optional[Client] = None


def _require_env(name: str, hint: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing environment variable: {name}. Set {name} to {hint}.")
    return value


def supabase_url() -> str:
    return _require_env("SUPABASE_URL", "your Supabase project URL").rstrip("/")


def supabase_key() -> str:
    return _require_env("SUPABASE_KEY", "your Supabase API key")


def edge_function_key() -> str:
    return os.getenv("SUPABASE_ANON_KEY") or supabase_key()


def edge_function_timeout() -> float:
    return float(os.getenv("EDGE_FUNCTION_TIMEOUT", "10"))


def get_supabase() -> Client:
    """Return the shared Supabase client, creating it on first use."""

    global _client
    if _client is None:
        _client = create_client(supabase_url(), supabase_key())
    return _client


def set_supabase(client: Optional[Client]) -> None:
    """Replace the shared client (None forces re-creation on next use)."""

    global _client
    _client = client


def run_query(query: Any, action: str) -> Any:
    """
    Execute a table or RPC query and return its `data`.

    Raises:
    - RuntimeError("Failed to <action>: ...") when Supabase reports an error,
      either on the response or as a postgrest APIError.
    """

    try:
        response = query.execute()
    except APIError as exc:
        raise RuntimeError(f"Failed to {action}: {exc.message or exc}") from exc

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")
    return getattr(response, "data", None)


def run_rows(query: Any, action: str) -> List[Mapping[str, Any]]:
    """Like run_query, but always returns a list of rows."""

    data = run_query(query, action)
    if data is None:
        return []
    if isinstance(data, list):
        return data
    return [data]


__all__ = [
    "edge_function_key",
    "edge_function_timeout",
    "get_supabase",
    "run_query",
    "run_rows",
    "set_supabase",
    "supabase_key",
    "supabase_url",
]
