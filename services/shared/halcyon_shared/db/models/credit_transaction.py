"""Append-only credit transaction log."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, generate_uuid, utcnow

TRANSACTION_TYPES = ("purchase", "subscription", "generation", "refund", "bonus", "adjustment")


class CreditTransaction(Base):
    """One movement of credits for a user.

    ``amount`` is the number of credits moved and is always positive;
    ``transaction_type`` tells whether credits were spent or granted.
    """

    __tablename__ = "credit_transactions"

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Project, prediction or payment the transaction belongs to",
    )
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_credit_transactions_amount_positive"),
        CheckConstraint(
            "transaction_type IN ('purchase', 'subscription', 'generation', "
            "'refund', 'bonus', 'adjustment')",
            name="ck_credit_transactions_type",
        ),
        Index("ix_credit_transactions_user_created", "user_id", "created_at"),
    )
