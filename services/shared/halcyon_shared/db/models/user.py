"""User model holding the credit balance."""

from sqlalchemy import CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin

DEFAULT_CREDITS = 100


class User(Base, TimestampMixin):
    """Registered user with a spendable credit balance.

    The balance can only move through the credit ledger, which keeps it
    non-negative with a conditional update backed by a CHECK constraint.
    """

    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Identity provider subject (e.g., 'auth0|abc123')",
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    credits_remaining: Mapped[int] = mapped_column(
        Integer,
        default=DEFAULT_CREDITS,
        nullable=False,
    )
    lifetime_credits_used: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    subscription_tier: Mapped[str] = mapped_column(
        String(20),
        default="free",
        nullable=False,
        comment="Subscription tier: 'free', 'pro' or 'enterprise'",
    )

    __table_args__ = (
        CheckConstraint("credits_remaining >= 0", name="ck_users_credits_non_negative"),
        CheckConstraint(
            "subscription_tier IN ('free', 'pro', 'enterprise')",
            name="ck_users_subscription_tier",
        ),
        Index("ix_users_email", "email"),
    )
