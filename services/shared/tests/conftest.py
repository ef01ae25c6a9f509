"""Pytest configuration for shared package tests."""

from collections.abc import AsyncGenerator

import pytest_asyncio

from halcyon_shared.db import DatabaseConnection


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[DatabaseConnection, None]:
    """In-memory SQLite database with all tables created."""
    database = DatabaseConnection(url="sqlite+aiosqlite:///:memory:")
    await database.create_tables()
    yield database
    await database.close()
