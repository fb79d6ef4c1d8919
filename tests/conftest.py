"""
tests/conftest.py -- Shared test fixtures for TaskGuard tests.

This module provides:
  - make_test_stores(): isolated in-memory DBs for users + tasks
  - _patch_lifespan(): wires test stores into app.state via configure_state()
  - api: module-scoped ApiEnv (TestClient + seeded users + their tokens)
  - user_store / task_store: function-scoped stores for unit tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

Environment must be set before any api/auth/core import:
  DEBUG=true            -- get_settings() auto-generates SECRET_KEY
  BCRYPT_ROUNDS=4       -- bcrypt's minimum cost keeps the suite fast
  LOGIN_RATE_LIMIT      -- high enough that the suite never trips it
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set env before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "10000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app, configure_state
from auth.models import ROLE_USER, User
from auth.passwords import hash_password
from auth.seed import DEMO_PASSWORD, seed_demo_users
from auth.store import UserStore
from core.config import get_settings
from tasks.store import TaskStore

_db_counter = itertools.count()

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_test_stores(db_suffix: str) -> tuple[UserStore, TaskStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    url = f"sqlite:///file:test_taskguard_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(url), TaskStore(url)


def _patch_lifespan(user_store: UserStore, task_store: TaskStore):
    """Return a lifespan that wires pre-created test stores into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        configure_state(app, get_settings(), user_store, task_store)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


@dataclass
class ApiEnv:
    """A running TestClient plus the seeded accounts and bearer headers for each."""

    client: TestClient
    user_store: UserStore
    task_store: TaskStore
    admin_id: int
    user1_id: int
    user2_id: int
    admin_headers: dict[str, str]
    user1_headers: dict[str, str]
    user2_headers: dict[str, str]


def _bearer(user: User) -> dict[str, str]:
    session = app.state.tokens.issue(user)
    return {"Authorization": f"Bearer {session.token}"}


@pytest.fixture(scope="module")
def api() -> Generator[ApiEnv, None, None]:
    """Yield an ApiEnv for API integration tests.

    Seeds the demo accounts (admin / user1, password "password123") plus a
    second regular user, user2, so ownership checks have someone to fail on.
    """
    user_store, task_store = make_test_stores(f"api_{next(_db_counter)}")
    rounds = get_settings().bcrypt_rounds
    admin_id, user1_id = seed_demo_users(user_store, rounds=rounds)
    user2_id = user_store.create_user(
        User(
            username="user2",
            hashed_password=hash_password(DEMO_PASSWORD, rounds=rounds),
            email="user2@example.com",
            role=ROLE_USER,
        )
    )

    app.router.lifespan_context = _patch_lifespan(user_store, task_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiEnv(
            client=client,
            user_store=user_store,
            task_store=task_store,
            admin_id=admin_id,
            user1_id=user1_id,
            user2_id=user2_id,
            admin_headers=_bearer(user_store.get_by_id(admin_id)),
            user1_headers=_bearer(user_store.get_by_id(user1_id)),
            user2_headers=_bearer(user_store.get_by_id(user2_id)),
        )

    task_store.close()
    user_store.close()


# ---------------------------------------------------------------------------
# Unit-test store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def task_store() -> Generator[TaskStore, None, None]:
    store = TaskStore("sqlite:///:memory:")
    yield store
    store.close()
