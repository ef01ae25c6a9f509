"""Credit balance endpoint."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from halcyon_shared.credits import CreditError, get_credit_transactions, get_user_credits
from halcyon_shared.db import DatabaseConnection
from halcyon_shared.logging import get_logger

from ..dependencies.auth import AuthenticatedUser, require_auth
from ..dependencies.providers import get_database
from ..models.credits import CreditBalanceModel, CreditsResponse, CreditTransactionModel

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Credits"])

HISTORY_LIMIT = 20


@router.get(
    "/credits",
    response_model=CreditsResponse,
    response_model_exclude_none=True,
    summary="Get Credits",
    description="Get the caller's credit balance, optionally with recent transactions",
)
async def get_credits(
    history: bool = Query(default=False, description="Include the last 20 transactions"),
    user: AuthenticatedUser = Depends(require_auth),
    db: DatabaseConnection = Depends(get_database),
) -> CreditsResponse:
    try:
        balance = await get_user_credits(user.sub, db=db)
        if balance is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User credits not found")

        transactions = None
        if history:
            rows = await get_credit_transactions(user.sub, limit=HISTORY_LIMIT, db=db)
            transactions = [CreditTransactionModel.model_validate(row) for row in rows]
    except CreditError as e:
        logger.error("Error fetching credits", user_id=user.sub, code=e.code.value)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch credits",
        ) from e

    return CreditsResponse(
        credits=CreditBalanceModel.model_validate(balance),
        transactions=transactions,
    )
