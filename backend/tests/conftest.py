# tests/conftest.py — Shared test fixtures
import os
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Unpersisted by default; gateway-backed tests build their own SQLite store
os.environ["DATABASE_URL"] = ""
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-unit-tests-only-min-32-chars"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "test"

from auth import AuthService, UserDirectory
from board import BoardController, BoardSession
from database import create_engine_for
from gateway import PersistenceGateway
from models import UserRole
from registry import BoardRegistry
from schemas import BoardUser
from main import app


class FakeClock:
    """Deterministic clock; each reading advances by one millisecond."""

    def __init__(self, start=None):
        self.now = start or datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(milliseconds=1)
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def alice():
    return BoardUser(id=1, name="Alice Johnson", email="alice@example.com", role=UserRole.ADMIN)


@pytest.fixture
def offline_gateway():
    return PersistenceGateway(None)


@pytest_asyncio.fixture
async def sqlite_gateway(tmp_path):
    """Gateway over a fresh SQLite file, schema created and seeded."""
    gateway = PersistenceGateway(create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'board.db'}"))
    assert await gateway.initialize()
    yield gateway
    await gateway.close()


@pytest_asyncio.fixture
async def demo_board(alice, offline_gateway, clock):
    """Controller in demo mode, holding the onboarding board."""
    controller = BoardController(BoardSession(user=alice), offline_gateway, clock=clock)
    await controller.load()
    return controller


@pytest_asyncio.fixture
async def persisted_board(alice, sqlite_gateway, clock):
    """Controller backed by the seeded SQLite store."""
    user = await sqlite_gateway.ensure_user(alice)
    controller = BoardController(BoardSession(user=user), sqlite_gateway, clock=clock)
    assert await controller.load()
    yield controller
    await controller.drain()


@pytest_asyncio.fixture(scope="function")
async def client(offline_gateway):
    """HTTP test client over an unpersisted app"""
    app.state.gateway = offline_gateway
    app.state.boards = BoardRegistry(offline_gateway)
    app.state.directory = UserDirectory()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await app.state.boards.close()


@pytest_asyncio.fixture(scope="function")
async def persisted_client(sqlite_gateway):
    """HTTP test client over an app backed by SQLite"""
    app.state.gateway = sqlite_gateway
    app.state.boards = BoardRegistry(sqlite_gateway)
    app.state.directory = UserDirectory()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await app.state.boards.close()


def get_auth_headers(user: BoardUser) -> dict:
    """Generate auth headers for a user"""
    token = AuthService.token_for(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def alice_headers(alice):
    return get_auth_headers(alice)


@pytest.fixture
def auth_headers():
    return get_auth_headers
