"""
Pytest configuration.

Adds the project root to the Python path so that tests can import the
domain, repositories, services and api packages, and provides a fake
Supabase client for the repository-backed tests.
"""

import sys
from pathlib import Path

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from repositories.client import set_supabase  # noqa: E402
from tests.fakes import FakeSupabase  # noqa: E402


@pytest.fixture
def fake_db():
    """Install an empty in-memory Supabase client for the duration of a test."""
    db = FakeSupabase()
    set_supabase(db)
    yield db
    set_supabase(None)
