"""
Shared fixtures.

Settings are read at import time, so the environment is filled before any
`opengmao` module is imported. Service tests run against an in-memory SQLite
database swapped in for the application engine.
"""

import os

os.environ.setdefault("DB_DRIVER_NAME", "sqlite")
os.environ.setdefault("DB_DATABASE_NAME", ":memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("API_KEY", "sk-test")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from opengmao.database.config import connection_engine as engine_module
import opengmao.database.entities  # noqa: F401
from opengmao.cache import ttl_cache
from opengmao.api.rate_limiter import upload_limiter, extraction_limiter


@pytest.fixture
def db_engine(monkeypatch: pytest.MonkeyPatch):
    """Fresh SQLite database bound to every `@transactional` call."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    engine_module.metadata.create_all(engine)
    monkeypatch.setattr(engine_module, "connection_engine", engine)
    yield engine
    engine_module.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def _reset_process_state():
    """In-process caches and rate limits do not leak between tests."""
    ttl_cache.clear_cache()
    upload_limiter.reset()
    extraction_limiter.reset()
    yield
    ttl_cache.clear_cache()
