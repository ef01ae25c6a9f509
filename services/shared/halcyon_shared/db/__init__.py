"""Shared database module."""

from .connection import (
    DatabaseConnection,
    create_engine,
    create_session_factory,
    get_database_url,
    get_db,
    get_session,
    set_db,
)
from .models import (
    Base,
    CreditTransaction,
    TimestampMixin,
    User,
    generate_uuid,
)

__all__ = [
    "Base",
    "CreditTransaction",
    "DatabaseConnection",
    "TimestampMixin",
    "User",
    "create_engine",
    "create_session_factory",
    "generate_uuid",
    "get_database_url",
    "get_db",
    "get_session",
    "set_db",
]
