"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides common fixtures: a temp store and a no-wait retry policy.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("CURRENT_USER", "Mum")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("PUSH_PROVIDER", "webhook")
os.environ.setdefault("TIMEZONE", "Pacific/Auckland")

import pytest


@pytest.fixture
def fast_retry():
    """A RetryPolicy with zero back-off so failing paths finish instantly."""
    from src.core.retry import RetryPolicy
    return RetryPolicy(max_attempts=4, delays=(0, 0, 0))


@pytest.fixture
def store(tmp_path):
    """Return a SQLiteStore with every known collection, backed by a temp file."""
    from src.adapters.sqlite_store import SQLiteStore
    from src.core.collections import UNIQUE_FIELDS
    s = SQLiteStore(db_path=str(tmp_path / "test_family.db"), collections=UNIQUE_FIELDS)
    yield s
    s.close()
