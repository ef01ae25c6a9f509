"""Pytest configuration and fixtures for API tests."""

from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from halcyon_api.dependencies.auth import SessionData, session_store
from halcyon_api.dependencies.csrf import generate_csrf_token
from halcyon_api.dependencies.providers import get_database
from halcyon_api.main import ROUTERS, register_exception_handlers
from halcyon_api.middleware import CorrelationIdMiddleware
from halcyon_api.routes import health
from halcyon_shared.config import get_settings
from halcyon_shared.db import DatabaseConnection
from halcyon_shared.db.models import User
from halcyon_shared.ratelimit import RateLimiter, get_rate_limiter

TEST_USER_ID = "auth0|test-user"


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[DatabaseConnection, None]:
    """In-memory SQLite database with all tables created."""
    database = DatabaseConnection(url="sqlite+aiosqlite:///:memory:")
    await database.create_tables()
    yield database
    await database.close()


@pytest.fixture
def seed_user(db) -> Callable[..., Awaitable[None]]:
    """Create a user with a given balance."""

    async def _seed(user_id: str = TEST_USER_ID, credits: int = 100) -> None:
        async with db.session() as session:
            session.add(User(user_id=user_id, credits_remaining=credits, lifetime_credits_used=0))

    return _seed


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def limiter() -> RateLimiter:
    """A fresh rate limiter so windows never leak between tests."""
    return RateLimiter()


@pytest.fixture
def app(db, limiter) -> FastAPI:
    """Create a FastAPI test application with a test database and limiter.

    Creates a minimal FastAPI app without the full lifespan initialization
    to avoid provider and database start-up during testing.
    """

    @asynccontextmanager
    async def mock_lifespan(app: FastAPI):
        app.state.db_initialized = True
        yield

    application = FastAPI(title="HALCYON Cinema API", version="0.1.0", lifespan=mock_lifespan)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(CorrelationIdMiddleware)
    register_exception_handlers(application)

    application.include_router(health.router)
    for router in ROUTERS:
        application.include_router(router)

    application.dependency_overrides[get_database] = lambda: db
    application.dependency_overrides[get_rate_limiter] = lambda: limiter
    return application


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a synchronous test client for routes that never touch the database."""
    with TestClient(app) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client without a session."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ============================================================================
# Session and CSRF Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def session_id() -> AsyncGenerator[str, None]:
    """A live session for the test user."""
    sid = await session_store.create_session(
        SessionData(
            user_info={"sub": TEST_USER_ID, "email": "test@example.com", "name": "Test User"},
            access_token="access-token",
            id_token=None,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )
    )
    yield sid
    await session_store.delete_session(sid)


@pytest.fixture
def csrf_token() -> str:
    settings = get_settings()
    return generate_csrf_token(settings.auth.csrf_secret)


@pytest_asyncio.fixture
async def user_client(app, session_id, csrf_token) -> AsyncGenerator[AsyncClient, None]:
    """An async client signed in as the test user, with CSRF cookie and header."""
    settings = get_settings()
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={
            settings.auth.session_cookie_name: session_id,
            settings.csrf_cookie_name: csrf_token,
        },
        headers={settings.auth.csrf_header_name: csrf_token},
    ) as ac:
        yield ac


# ============================================================================
# Provider Fixtures
# ============================================================================


@pytest.fixture
def production_configured(monkeypatch):
    """Pretend every production provider has credentials."""
    monkeypatch.setattr("halcyon_api.routes.production.get_missing_configurations", lambda: [])


@pytest.fixture
def make_generator() -> Callable[..., MagicMock]:
    """Build a generation adapter whose ``generate`` returns a fixed outcome."""

    def _make(outcome=None, configured: bool = True) -> MagicMock:
        generator = MagicMock()
        generator.is_configured = configured
        generator.generate = AsyncMock(return_value=outcome)
        return generator

    return _make
