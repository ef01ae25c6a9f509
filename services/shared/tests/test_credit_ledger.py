"""Tests for the credit ledger against a real (SQLite) database."""

from contextlib import asynccontextmanager

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from halcyon_shared.credits import (
    CreditError,
    CreditErrorCode,
    TransactionType,
    add_credits,
    deduct_credits,
    ensure_user,
    get_credit_transactions,
    get_user_credits,
)
from halcyon_shared.db.models import CreditTransaction, User


class UnreachableDatabase:
    """Database stand-in whose connections always fail."""

    @asynccontextmanager
    async def session(self):
        raise OperationalError("SELECT 1", {}, ConnectionRefusedError("connection refused"))
        yield  # pragma: no cover


async def _create_user(db, user_id: str = "auth0|alice", credits: int = 100) -> None:
    async with db.session() as session:
        session.add(User(user_id=user_id, credits_remaining=credits, lifetime_credits_used=0))


async def _transaction_count(db) -> int:
    async with db.session() as session:
        return await session.scalar(select(func.count()).select_from(CreditTransaction))


# ============================================================================
# deduct_credits
# ============================================================================


class TestDeductCredits:
    """Tests for deduct_credits."""

    @pytest.mark.asyncio
    async def test_deducts_and_records_transaction(self, db):
        """A covered deduction lowers the balance and appends one transaction."""
        await _create_user(db, credits=100)

        balance = await deduct_credits(
            "auth0|alice",
            40,
            "Full episode production (1 min)",
            reference_id="project-1",
            db=db,
        )

        assert balance.credits_remaining == 60
        assert balance.lifetime_credits_used == 40

        transactions = await get_credit_transactions("auth0|alice", db=db)
        assert len(transactions) == 1
        tx = transactions[0]
        assert tx.amount == 40
        assert tx.transaction_type == "generation"
        assert tx.reference_id == "project-1"
        assert tx.balance_after == 60
        assert tx.description == "Full episode production (1 min)"

    @pytest.mark.asyncio
    async def test_exact_balance_can_be_spent(self, db):
        """Spending the whole balance leaves exactly zero."""
        await _create_user(db, credits=25)

        balance = await deduct_credits("auth0|alice", 25, "video", db=db)

        assert balance.credits_remaining == 0

    @pytest.mark.asyncio
    async def test_insufficient_credits_leaves_balance_unchanged(self, db):
        """An uncovered deduction raises INSUFFICIENT_CREDITS and changes nothing."""
        await _create_user(db, credits=10)

        with pytest.raises(CreditError) as exc_info:
            await deduct_credits("auth0|alice", 11, "video", db=db)

        assert exc_info.value.code == CreditErrorCode.INSUFFICIENT_CREDITS
        balance = await get_user_credits("auth0|alice", db=db)
        assert balance.credits_remaining == 10
        assert await _transaction_count(db) == 0

    @pytest.mark.asyncio
    async def test_sequential_deductions_never_go_negative(self, db):
        """Repeated charges stop at the first one that would overdraw."""
        await _create_user(db, credits=25)
        outcomes = []
        for _ in range(4):
            try:
                await deduct_credits("auth0|alice", 10, "music", db=db)
                outcomes.append("ok")
            except CreditError as e:
                outcomes.append(e.code.value)

        assert outcomes == ["ok", "ok", "INSUFFICIENT_CREDITS", "INSUFFICIENT_CREDITS"]
        assert (await get_user_credits("auth0|alice", db=db)).credits_remaining == 5
        assert await _transaction_count(db) == 2

    @pytest.mark.asyncio
    async def test_unknown_user(self, db):
        """Charging a user without a balance row raises USER_NOT_FOUND."""
        with pytest.raises(CreditError) as exc_info:
            await deduct_credits("auth0|ghost", 5, "video", db=db)

        assert exc_info.value.code == CreditErrorCode.USER_NOT_FOUND

    @pytest.mark.asyncio
    async def test_database_unreachable(self):
        """Connectivity failures surface as DB_UNAVAILABLE."""
        with pytest.raises(CreditError) as exc_info:
            await deduct_credits("auth0|alice", 5, "video", db=UnreachableDatabase())

        assert exc_info.value.code == CreditErrorCode.DB_UNAVAILABLE
        assert isinstance(exc_info.value.__cause__, OperationalError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5])
    async def test_rejects_non_positive_amount(self, db, amount):
        """Zero and negative amounts are programming errors."""
        with pytest.raises(ValueError):
            await deduct_credits("auth0|alice", amount, "video", db=db)


# ============================================================================
# add_credits, ensure_user and reads
# ============================================================================


class TestAddCredits:
    """Tests for add_credits."""

    @pytest.mark.asyncio
    async def test_refund_increases_balance(self, db):
        """Refunds credit the balance and are logged with their type."""
        await _create_user(db, credits=5)

        balance = await add_credits(
            "auth0|alice", 10, "Refund for failed render", transaction_type=TransactionType.REFUND, db=db
        )

        assert balance.credits_remaining == 15
        transactions = await get_credit_transactions("auth0|alice", db=db)
        assert transactions[0].transaction_type == "refund"
        assert transactions[0].balance_after == 15

    @pytest.mark.asyncio
    async def test_generation_type_is_rejected(self, db):
        """Credits can never be granted with the generation type."""
        with pytest.raises(ValueError):
            await add_credits("auth0|alice", 10, "oops", transaction_type="generation", db=db)

    @pytest.mark.asyncio
    async def test_unknown_user(self, db):
        with pytest.raises(CreditError) as exc_info:
            await add_credits("auth0|ghost", 10, "bonus", db=db)

        assert exc_info.value.code == CreditErrorCode.USER_NOT_FOUND


class TestEnsureUser:
    """Tests for ensure_user and get_user_credits."""

    @pytest.mark.asyncio
    async def test_creates_user_with_default_balance(self, db):
        balance = await ensure_user("auth0|new", email="new@example.com", db=db)

        assert balance.credits_remaining == 100
        assert balance.subscription_tier == "free"

    @pytest.mark.asyncio
    async def test_existing_user_is_returned_unchanged(self, db):
        await _create_user(db, credits=7)

        balance = await ensure_user("auth0|alice", db=db)

        assert balance.credits_remaining == 7

    @pytest.mark.asyncio
    async def test_missing_user_reads_as_none(self, db):
        assert await get_user_credits("auth0|nobody", db=db) is None

    @pytest.mark.asyncio
    async def test_transaction_history_is_limited(self, db):
        await _create_user(db, credits=100)
        for _ in range(5):
            await deduct_credits("auth0|alice", 1, "image", db=db)

        transactions = await get_credit_transactions("auth0|alice", limit=3, db=db)

        assert len(transactions) == 3
