"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of devio.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite renders JSONB as TEXT; SQLAlchemy's JSON serialisation still applies.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from devio.database.models import (  # noqa: E402
    Achievement,
    Base,
    CipherReason,
    Comment,
    Post,
    PostType,
    User,
)
from devio.services.dispatch import SideEffectDispatcher  # noqa: E402

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
    """Create an in-memory SQLite engine with all Devio tables.

    Uses StaticPool so every session (and the API's worker threads) share
    the same in-memory database.  ``FOR UPDATE`` renders as nothing on
    SQLite; the guarded UPDATEs and constraints still apply.
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
def engine(db_engine):
    return db_engine


@pytest.fixture
def dispatcher() -> SideEffectDispatcher:
    """Runs post-commit side effects synchronously so tests can assert on them."""
    return SideEffectDispatcher(inline=True)


# ---------------------------------------------------------------------------
# Data builders
# ---------------------------------------------------------------------------
def make_user(engine: Engine, user_id: int, username: str | None = None, cipher: int = 0) -> int:
    """Insert a user; seed *cipher* through the ledger so the projection matches."""
    with Session(engine) as session:
        session.add(User(id=user_id, username=username or f"user{user_id}"))
        session.commit()
    if cipher:
        from devio.services.cipher_service import award_cipher

        award_cipher(engine, user_id, cipher, CipherReason.ADMIN_GRANT)
    return user_id


def make_post(
    engine: Engine,
    author_id: int,
    *,
    type: PostType = PostType.TEXT,
    title: str = "Hello",
    bounty_amount: int = 0,
) -> int:
    """Insert a post directly (no escrow); returns its id."""
    with Session(engine) as session:
        post = Post(
            author_id=author_id, type=type.value, title=title, bounty_amount=bounty_amount
        )
        session.add(post)
        session.commit()
        return post.id


def make_comment(
    engine: Engine,
    post_id: int,
    author_id: int,
    *,
    parent_id: int | None = None,
    content: str = "An answer",
) -> int:
    with Session(engine) as session:
        comment = Comment(
            post_id=post_id, author_id=author_id, parent_id=parent_id, content=content
        )
        session.add(comment)
        session.commit()
        return comment.id


def make_achievement(
    engine: Engine,
    slug: str,
    criteria: str,
    threshold: int | None,
    *,
    aura_reward: int = 0,
    cipher_reward: int = 0,
) -> int:
    with Session(engine) as session:
        ach = Achievement(
            slug=slug,
            name=slug.replace("-", " ").title(),
            criteria=str(criteria),
            threshold=threshold,
            aura_reward=aura_reward,
            cipher_reward=cipher_reward,
        )
        session.add(ach)
        session.commit()
        return ach.id


# ---------------------------------------------------------------------------
# API helpers
# ---------------------------------------------------------------------------
def make_token(sub: str | int = "1", *, is_admin: bool = False) -> str:
    """Sign a bearer token the way the platform's auth service would."""
    import jwt

    from devio.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": str(sub), "username": f"user{sub}", "is_admin": is_admin},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def auth(sub: str | int = "1", *, is_admin: bool = False) -> dict:
    return {"Authorization": f"Bearer {make_token(sub, is_admin=is_admin)}"}


@pytest.fixture
def client(db_engine, dispatcher):
    """FastAPI TestClient bound to the in-memory engine and inline dispatcher."""
    from fastapi.testclient import TestClient

    from devio.api.deps import get_dispatcher, get_engine
    from devio.api.main import app

    app.dependency_overrides[get_engine] = lambda: db_engine
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
