"""
Pytest Configuration and Fixtures

Every test gets its own SQLite file under tmp_path, so the store tests run
offline with no Postgres. The file (not :memory:) is required because the
filter engine reads on two sessions at once.
"""

import os

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Test environment defaults - MUST be before any hathi imports.
#
# 1. Load .env first so local credentials are available.
# 2. setdefault fills in anything still missing (CI runners, fresh clones
#    without a .env file) so that pydantic Settings validation doesn't crash.
# ---------------------------------------------------------------------------
load_dotenv()  # .env → os.environ (no-op if file is missing)

_test_env = {
    "POSTGRES_USER": "hathi",
    "POSTGRES_PASSWORD": "hathi_password",
    "POSTGRES_HOST": "localhost",
    "POSTGRES_PORT": "5432",
    "POSTGRES_DB": "hathi_db",
    "HATHI_API_KEY": "test-key",
}
for _key, _value in _test_env.items():
    os.environ.setdefault(_key, _value)

# ---------------------------------------------------------------------------
# Imports (safe now that env vars are set)
# ---------------------------------------------------------------------------
from collections.abc import Generator  # noqa: E402
from pathlib import Path  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool  # noqa: E402

from hathi.models import Base  # noqa: E402
from hathi.repositories import (  # noqa: E402
    ContextRepository,
    FilterEngine,
    NoteRepository,
)
from hathi.services.search import SemanticSearchEngine  # noqa: E402

API_KEY = os.environ["HATHI_API_KEY"]


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Fresh SQLite file with the schema created."""
    path = tmp_path / "hathi.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    return path


@pytest.fixture
def session_factory(db_path: Path) -> Generator[async_sessionmaker[AsyncSession], None, None]:
    """
    Session factory over the test database.

    NullPool: connections are never reused, so the factory works from the
    pytest-asyncio loop and from TestClient's loop alike.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    yield async_sessionmaker(engine, expire_on_commit=False)
    engine.sync_engine.dispose()


@pytest.fixture
def contexts(session_factory) -> ContextRepository:
    return ContextRepository(session_factory)


@pytest.fixture
def notes(session_factory, contexts) -> NoteRepository:
    return NoteRepository(session_factory, contexts)


@pytest.fixture
def filter_engine(session_factory) -> FilterEngine:
    return FilterEngine(session_factory)


@pytest.fixture
def search_engine(session_factory) -> SemanticSearchEngine:
    return SemanticSearchEngine(session_factory)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Authorization header accepted by the v1 API."""
    return {"Authorization": f"Bearer {API_KEY}"}
