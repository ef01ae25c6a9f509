"""Credit balance models."""

from datetime import datetime

from pydantic import Field

from .base import BaseResponse


class CreditBalanceModel(BaseResponse):
    user_id: str = Field(alias="userId")
    credits_remaining: int = Field(alias="creditsRemaining")
    lifetime_credits_used: int = Field(alias="lifetimeCreditsUsed")
    subscription_tier: str = Field(alias="subscriptionTier")


class CreditTransactionModel(BaseResponse):
    amount: int
    transaction_type: str = Field(alias="transactionType")
    description: str | None = None
    reference_id: str | None = Field(default=None, alias="referenceId")
    balance_after: int = Field(alias="balanceAfter")
    created_at: datetime = Field(alias="createdAt")


class CreditsResponse(BaseResponse):
    credits: CreditBalanceModel
    transactions: list[CreditTransactionModel] | None = None
