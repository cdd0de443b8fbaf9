"""
tests/conftest.py -- Shared test fixtures for OrgVault.

This module provides:
  - store: an isolated in-memory VaultStore per test
  - _helpers.make_user() (re-used here): registers a user through the store
  - api_client: TestClient over the real app with a patched lifespan and
    pre-created users/tokens

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for the
API client because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

DEBUG and ALLOWED_HOSTS must be set before any app import: get_settings()
auto-generates SECRET_KEY only in debug mode, and TestClient sends
Host: testserver.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Generator
from contextlib import asynccontextmanager
from pathlib import Path

# CRITICAL: Set before any core/auth/api import so get_settings() picks them up.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

# Make _helpers importable from test files
sys.path.insert(0, str(Path(__file__).parent))

import pytest  # noqa: E402
from _helpers import ApiContext, make_user  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from api.limiter import limiter  # noqa: E402
from api.main import app  # noqa: E402
from auth.tokens import create_access_token  # noqa: E402
from vault.store import VaultStore  # noqa: E402


@pytest.fixture
def store() -> Generator[VaultStore, None, None]:
    """Fresh in-memory store per test."""
    s = VaultStore("sqlite:///:memory:")
    yield s
    s.close()


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


def _patch_lifespan(store: VaultStore):
    """Return a lifespan that wires the pre-built test store into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.store = store
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext backed by an isolated shared-memory database.

    Two users exist up front: owner@example.com and outsider@example.com,
    both with DEFAULT_PASSWORD and a one-hour bearer token. The rate limiter
    is reset so each test module starts with a clean budget.
    """
    db_name = request.module.__name__.rsplit(".", 1)[-1]
    s = VaultStore(f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    owner = make_user(s, "owner@example.com", first="Owner")
    outsider = make_user(s, "outsider@example.com", first="Outsider")

    limiter.reset()
    app.router.lifespan_context = _patch_lifespan(s)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(
            client=client,
            store=s,
            owner=owner,
            owner_token=create_access_token(owner.id, owner.email, expire_seconds=3600),
            outsider=outsider,
            outsider_token=create_access_token(outsider.id, outsider.email, expire_seconds=3600),
        )

    s.close()
