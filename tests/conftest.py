"""Pytest configuration and fixtures."""
import os

# Set test env BEFORE any imports that use config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ADMIN_USER_ID"] = "1000"
os.environ["MAIN_CHANNEL_ID"] = "500"
os.environ["TIMEZONE"] = "Europe/Belgrade"
os.environ["COURT_PRICE"] = "2000"
os.environ["INTERNAL_API_SECRET"] = "test-secret"
os.environ["API_KEY"] = "test-key"
os.environ.pop("LOG_CHANNEL_ID", None)

from datetime import datetime, timezone
from itertools import count

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from squash.models import init_db
from squash.services.container import build_services
from squash.services.lifecycle import UserRef
from squash.services.transport import SendResult, Transport
from web.api.main import app
from web.api.routes import get_session_factory

ADMIN_ID = 1000
MAIN_CHANNEL = 500


class FakeTransport(Transport):
    """Records every call. Delivery can be made to fail per method or per user."""

    def __init__(self):
        self._ids = count(9001)
        self.sent = []  # (channel_id, rendered)
        self.edited = []  # (channel_id, message_id, rendered)
        self.pinned = []
        self.unpinned = []
        self.directs = []  # (user_id, rendered)
        self.edited_directs = []
        self.deleted_directs = []
        self.logged = []
        self.fail_send = False
        self.fail_pin = False
        self.unreachable_users: set[int] = set()

    @property
    def bot_name(self) -> str:
        return "@squash_bot"

    def _ok(self, message_id=None) -> SendResult:
        return SendResult(ok=True, message_id=message_id or next(self._ids))

    async def send_message(self, channel_id, rendered):
        if self.fail_send:
            return SendResult(ok=False, error="Missing Access")
        self.sent.append((channel_id, rendered))
        return self._ok()

    async def edit_message(self, channel_id, message_id, rendered):
        self.edited.append((channel_id, message_id, rendered))
        return self._ok(message_id)

    async def pin_message(self, channel_id, message_id):
        if self.fail_pin:
            return SendResult(ok=False, error="Missing Permissions")
        self.pinned.append((channel_id, message_id))
        return self._ok(message_id)

    async def unpin_message(self, channel_id, message_id):
        self.unpinned.append((channel_id, message_id))
        return self._ok(message_id)

    async def send_direct(self, user_id, rendered):
        if user_id in self.unreachable_users:
            return SendResult(ok=False, error="Cannot send messages to this user")
        self.directs.append((user_id, rendered))
        return self._ok()

    async def edit_direct(self, user_id, message_id, rendered):
        self.edited_directs.append((user_id, message_id, rendered))
        return self._ok(message_id)

    async def delete_direct(self, user_id, message_id):
        self.deleted_directs.append((user_id, message_id))
        return self._ok(message_id)

    async def message_link(self, channel_id, message_id):
        return f"https://discord.com/channels/1/{channel_id}/{message_id}"

    def log_event(self, event):
        self.logged.append(event)

    def log_kinds(self) -> list[str]:
        return [e.kind for e in self.logged]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def session_factory(tmp_path):
    """Fresh database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    await init_db(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def services(transport, session_factory):
    return build_services(transport, session_factory)


@pytest.fixture
def lifecycle(services):
    return services.lifecycle


@pytest.fixture
def alice():
    return UserRef(discord_id=1, username="alice", display_name="Alice")


@pytest.fixture
def bob():
    return UserRef(discord_id=2, username="bob", display_name="Bob")


@pytest.fixture
def carol():
    return UserRef(discord_id=3, username=None, display_name="Carol")


@pytest.fixture
def future_start():
    """A Saturday evening well in the future (21:00 Belgrade, CET)."""
    return datetime(2030, 1, 19, 20, 0, tzinfo=timezone.utc)


@pytest.fixture
async def created_event(lifecycle, future_start):
    return await lifecycle.create_event(future_start, courts=2, owner_id=ADMIN_ID)


@pytest.fixture
async def announced_event(lifecycle, created_event):
    return await lifecycle.announce(created_event.id)


@pytest.fixture
async def client(session_factory):
    """Async HTTP client for testing the API, bound to the per-test database."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
