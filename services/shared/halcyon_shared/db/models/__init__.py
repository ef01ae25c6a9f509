"""SQLAlchemy database models for HALCYON Cinema."""

from .base import Base, TimestampMixin, generate_uuid, utcnow
from .credit_transaction import TRANSACTION_TYPES, CreditTransaction
from .user import DEFAULT_CREDITS, User

__all__ = [
    "Base",
    "CreditTransaction",
    "DEFAULT_CREDITS",
    "TRANSACTION_TYPES",
    "TimestampMixin",
    "User",
    "generate_uuid",
    "utcnow",
]
