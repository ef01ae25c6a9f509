"""Credit checks shared by the billable routes."""

from __future__ import annotations

from fastapi import HTTPException, status

from halcyon_shared.credits import (
    CreditBalance,
    CreditError,
    CreditErrorCode,
    deduct_credits,
    get_user_credits,
)
from halcyon_shared.db import DatabaseConnection
from halcyon_shared.logging import get_logger

logger = get_logger(__name__)

CREDIT_SERVICE_UNAVAILABLE = "Credit service temporarily unavailable. Please try again later."
CREDITS_USED_ELSEWHERE = "Insufficient credits. Your credits may have been used elsewhere."


async def require_credits(
    user_id: str,
    required: int,
    db: DatabaseConnection,
    message: str,
) -> CreditBalance:
    """Check the balance before any provider is called.

    Raises:
        HTTPException: 403 if the user has no balance, 402 if it is below
            ``required``, 503 if the ledger cannot be reached.
    """
    try:
        balance = await get_user_credits(user_id, db=db)
    except CreditError as e:
        logger.error("Credit balance lookup failed", user_id=user_id, code=e.code.value)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=CREDIT_SERVICE_UNAVAILABLE,
        ) from e

    if balance is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User not found or credits not available",
        )

    if balance.credits_remaining < required:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "message": message,
                "creditsRemaining": balance.credits_remaining,
                "requiredCredits": required,
            },
        )
    return balance


async def charge_credits(
    user_id: str,
    amount: int,
    reason: str,
    reference_id: str | None,
    db: DatabaseConnection,
) -> CreditBalance:
    """Deduct credits for a finished generation.

    Raises:
        HTTPException: 402 on ``INSUFFICIENT_CREDITS``, 503 on
            ``DB_UNAVAILABLE``, 500 for anything else.
    """
    try:
        return await deduct_credits(user_id, amount, reason, reference_id, db=db)
    except CreditError as e:
        logger.error(
            "Failed to deduct credits",
            user_id=user_id,
            amount=amount,
            reference_id=reference_id,
            code=e.code.value,
        )
        if e.code == CreditErrorCode.INSUFFICIENT_CREDITS:
            raise HTTPException(
                status_code=status.HTTP_402_PAYMENT_REQUIRED,
                detail={"message": CREDITS_USED_ELSEWHERE, "creditsRemaining": 0},
            ) from e
        if e.code == CreditErrorCode.DB_UNAVAILABLE:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail={"message": CREDIT_SERVICE_UNAVAILABLE, "retryable": True},
            ) from e
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process credits. Please try again.",
        ) from e
