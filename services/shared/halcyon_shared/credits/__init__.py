"""Credit ledger module."""

from .ledger import (
    CreditBalance,
    CreditError,
    CreditErrorCode,
    TransactionType,
    add_credits,
    deduct_credits,
    ensure_user,
    get_credit_transactions,
    get_user_credits,
)

__all__ = [
    "CreditBalance",
    "CreditError",
    "CreditErrorCode",
    "TransactionType",
    "add_credits",
    "deduct_credits",
    "ensure_user",
    "get_credit_transactions",
    "get_user_credits",
]
