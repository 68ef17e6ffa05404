"""
Pytest configuration and fixtures for the user directory.
Provides key, codec, database and repository fixtures with proper cleanup.
"""
import os

# Settings are read on import; pin a safe test configuration first
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("EPHEMERAL_ENCRYPTION_KEY", "true")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CHAT_ENABLED", "false")

import sqlite3
from pathlib import Path
from typing import AsyncGenerator, List, Tuple

import pytest
import pytest_asyncio
import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

import user_directory.main  # noqa: F401  configures logging
from user_directory.core.database import build_engine, build_session_factory, init_db
from user_directory.core.encryption import KeyProvider, FernetFieldCodec
from user_directory.repositories.user_repository import UserRepository

# Loggers must stay uncached so structlog.testing.capture_logs sees them
structlog.configure(cache_logger_on_first_use=False)


@pytest.fixture
def key_provider() -> KeyProvider:
    """Initialized provider with an in-memory key."""
    provider = KeyProvider.ephemeral()
    provider.initialize()
    yield provider
    provider.cleanup()


@pytest.fixture
def codec(key_provider) -> FernetFieldCodec:
    return FernetFieldCodec(key_provider)


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "users.db"


@pytest.fixture
def database_url(db_path) -> str:
    return f"sqlite+aiosqlite:///{db_path}"


@pytest_asyncio.fixture
async def test_engine(database_url) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine with the users table created."""
    engine = build_engine(database_url)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return build_session_factory(test_engine)


@pytest.fixture
def user_repository(codec, session_factory) -> UserRepository:
    return UserRepository(codec=codec, session_factory=session_factory)


@pytest.fixture
def raw_rows(db_path):
    """Read the users table directly, bypassing the repository."""
    def _read() -> List[Tuple[int, str, str]]:
        with sqlite3.connect(db_path) as conn:
            return conn.execute("SELECT id, name, email FROM users ORDER BY id").fetchall()
    return _read


@pytest.fixture
def corrupt_email(db_path):
    """Overwrite a stored email value directly in the store."""
    def _corrupt(user_id: int, value: str) -> None:
        with sqlite3.connect(db_path) as conn:
            conn.execute("UPDATE users SET email = ? WHERE id = ?", (value, user_id))
    return _corrupt
