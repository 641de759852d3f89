"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of threadline.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from dataclasses import dataclass  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine, event  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.exc import OperationalError  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from threadline.database.models import (  # noqa: E402
    Base,
    Category,
    ForumThread,
    ModeratorAssignment,
    User,
)

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent).

    Also maps BigInteger → INTEGER so autoincrement works on SQLite.
    """
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all Threadline tables.

    StaticPool keeps one shared connection so ``asyncio.to_thread`` (used by
    ``run_db`` in the API routes) sees the same in-memory database.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a transactional session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# A small forum:
#
#   Academics (C)              Social (S)
#   └── Mathematics (C2)
#       └── Algebra (C3)
#
#   Thread T lives in C2.  Thread ST lives in S.
# ---------------------------------------------------------------------------
@dataclass
class Forum:
    academics: int
    mathematics: int
    algebra: int
    social: int
    thread: int
    social_thread: int
    author: int
    moderator: int
    sibling_moderator: int
    admin: int
    stranger: int


@pytest.fixture
def forum(db_engine: Engine) -> Forum:
    with Session(db_engine, expire_on_commit=False) as s:
        users = {
            name: User(username=name, email=f"{name}@example.edu", is_admin=(name == "admin"))
            for name in ("author", "moderator", "sibling_moderator", "admin", "stranger")
        }
        s.add_all(users.values())

        academics = Category(name="Academics")
        social = Category(name="Social")
        s.add_all([academics, social])
        s.flush()
        mathematics = Category(name="Mathematics", parent_id=academics.id)
        s.add(mathematics)
        s.flush()
        algebra = Category(name="Algebra", parent_id=mathematics.id)
        s.add(algebra)
        s.flush()

        s.add_all([
            ModeratorAssignment(user_id=users["moderator"].id, category_id=academics.id),
            ModeratorAssignment(user_id=users["sibling_moderator"].id, category_id=social.id),
        ])
        thread = ForumThread(
            title="Homework help", category_id=mathematics.id, author_id=users["author"].id
        )
        social_thread = ForumThread(title="Weekend plans", category_id=social.id)
        s.add_all([thread, social_thread])
        s.commit()

        return Forum(
            academics=academics.id,
            mathematics=mathematics.id,
            algebra=algebra.id,
            social=social.id,
            thread=thread.id,
            social_thread=social_thread.id,
            author=users["author"].id,
            moderator=users["moderator"].id,
            sibling_moderator=users["sibling_moderator"].id,
            admin=users["admin"].id,
            stranger=users["stranger"].id,
        )


@pytest.fixture
def fail_sql(db_engine: Engine):
    """Arm a database failure for statements containing *marker*.

    ``fail_sql("posts.parent_id IN", skip=1)`` lets the first matching
    statement through and raises :class:`OperationalError` on the next one,
    the way a dropped connection would surface mid-request.
    """
    armed: list[tuple[str, list[int]]] = []

    def _fail(conn, cursor, statement, parameters, context, executemany):
        for marker, remaining in armed:
            if marker in statement:
                if remaining[0] > 0:
                    remaining[0] -= 1
                    continue
                raise OperationalError(statement, parameters, Exception("connection lost"))

    def arm(marker: str, skip: int = 0) -> None:
        armed.append((marker, [skip]))

    event.listen(db_engine, "before_cursor_execute", _fail)
    yield arm
    event.remove(db_engine, "before_cursor_execute", _fail)


def make_token(user_id: int) -> str:
    """Create a bearer token for *user_id*."""
    import jwt

    from threadline.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode({"sub": str(user_id)}, JWT_SECRET, algorithm=JWT_ALGORITHM)


@pytest.fixture
def client(db_engine: Engine):
    """FastAPI TestClient wired to the in-memory engine and a test config."""
    from fastapi.testclient import TestClient

    from threadline.api.deps import get_config, get_engine
    from threadline.api.main import app
    from threadline.config import ThreadlineConfig

    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_config] = lambda: ThreadlineConfig(
        forum_name="Test Forum", api_port=8000
    )
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
