"""Test fixtures — a fresh seeded database and app per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI + strawberry:

1. Each test gets its own temporary SQLite file (function-scoped), so
   orderStats' concurrent sessions see the same data and nothing leaks
   between tests.
2. The app is built with create_app(settings) and the schema + demo data
   are created directly. ASGITransport does not run the lifespan.
3. The notification dispatcher is swapped for a RecordingDispatcher that
   delivers inline and keeps every ChangeEvent, so tests can assert on
   exactly what would have been broadcast.
"""

from datetime import datetime
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from orderhub.config import Settings
from orderhub.db.engine import create_schema
from orderhub.db.models import User, UserRole
from orderhub.db.seed import ADMIN_ID, USER_ID, seed_demo_data
from orderhub.events.types import ChangeEvent
from orderhub.main import create_app
from orderhub.realtime.dispatcher import NotificationDispatcher

TEST_SIGNING_KEY = "test-signing-key-with-more-than-32-characters"


def make_settings(tmp_path, **overrides) -> Settings:
    values = {
        "environment": "test",
        "jwt_signing_key": TEST_SIGNING_KEY,
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'orderhub-test.db'}",
        "bcrypt_rounds": 4,
        "notification_mode": "disabled",
        "broadcast_in_background": False,
        "broadcast_backoff_seconds": 0.001,
        "seed_demo_data": False,
    }
    values.update(overrides)
    return Settings(**values)


class RecordingDispatcher(NotificationDispatcher):
    """Delivers inline and remembers every event."""

    def __init__(self):
        super().__init__(background=False)
        self.events: list[ChangeEvent] = []

    async def deliver(self, event: ChangeEvent) -> None:
        self.events.append(event)

    def methods(self) -> list[tuple[str, Optional[str]]]:
        return [(e.method, e.group) for e in self.events]


SEEDED_USERS = {
    "admin": User(id=ADMIN_ID, username="admin", email="admin@orderhub.dev",
                  role=UserRole.ADMIN, created_at=datetime(2024, 1, 1)),
    "user": User(id=USER_ID, username="user", email="user@orderhub.dev",
                 role=UserRole.USER, created_at=datetime(2024, 1, 1)),
}


@pytest.fixture()
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture()
def recorder():
    return RecordingDispatcher()


@pytest_asyncio.fixture()
async def app(settings, recorder):
    """Seeded API app backed by a per-test SQLite file."""
    application = create_app(settings)
    application.state.notifier = recorder

    await create_schema(application.state.engine)
    async with application.state.session_factory() as db:
        await seed_demo_data(db, bcrypt_rounds=settings.bcrypt_rounds)

    yield application
    await application.state.engine.dispose()


@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def tokens(app):
    return app.state.tokens


@pytest.fixture()
def user_token(tokens):
    """Bearer token for the seeded non-admin user (owns order-003)."""
    return tokens.issue_token(SEEDED_USERS["user"])


@pytest.fixture()
def admin_token(tokens):
    """Bearer token for the seeded admin (owns order-001 and order-002)."""
    return tokens.issue_token(SEEDED_USERS["admin"])


@pytest.fixture()
def gql(client):
    """POST a GraphQL document, optionally with a bearer token, and return the body."""

    async def run(query: str, variables: Optional[dict] = None, token: Optional[str] = None) -> dict:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        r = await client.post(
            "/graphql",
            json={"query": query, "variables": variables or {}},
            headers=headers,
        )
        assert r.status_code == 200, r.text
        return r.json()

    return run


@pytest.fixture()
def seeded_users():
    """Detached copies of the seeded users, for minting tokens."""
    return SEEDED_USERS


@pytest.fixture()
def make_test_settings(tmp_path):
    """Settings for this test's database with some fields overridden."""

    def build(**overrides) -> Settings:
        return make_settings(tmp_path, **overrides)

    return build
