"""Credit ledger: atomic balance changes with an append-only transaction log.

Every balance change is a single conditional UPDATE followed by an insert
into ``credit_transactions`` inside the same database transaction, so the
balance and the log always agree and the balance can never go negative,
no matter how many requests race for the same user.
"""

from dataclasses import dataclass
from enum import Enum

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from ..config import get_settings
from ..db.connection import DatabaseConnection, get_db
from ..db.models import CreditTransaction, User, utcnow
from ..logging import get_logger

logger = get_logger(__name__)

# Failures that mean the database could not be reached, as opposed to a
# query that ran and said no.
CONNECTIVITY_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError, OSError, TimeoutError)


class CreditErrorCode(str, Enum):
    """Machine-readable reason a ledger operation failed."""

    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    DB_UNAVAILABLE = "DB_UNAVAILABLE"
    USER_NOT_FOUND = "USER_NOT_FOUND"


class TransactionType(str, Enum):
    """Kind of credit movement recorded in the ledger."""

    PURCHASE = "purchase"
    SUBSCRIPTION = "subscription"
    GENERATION = "generation"
    REFUND = "refund"
    BONUS = "bonus"
    ADJUSTMENT = "adjustment"


class CreditError(Exception):
    """Raised when credits could not be moved.

    Callers branch on ``code`` rather than on the message.
    """

    def __init__(self, code: CreditErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"CreditError(code={self.code.value!r}, message={self.message!r})"


@dataclass(frozen=True)
class CreditBalance:
    """Snapshot of a user's balance after a ledger operation."""

    user_id: str
    credits_remaining: int
    lifetime_credits_used: int = 0
    subscription_tier: str = "free"


def _balance_from_user(user: User) -> CreditBalance:
    return CreditBalance(
        user_id=user.user_id,
        credits_remaining=user.credits_remaining,
        lifetime_credits_used=user.lifetime_credits_used,
        subscription_tier=user.subscription_tier,
    )


async def deduct_credits(
    user_id: str,
    amount: int,
    reason: str,
    reference_id: str | None = None,
    transaction_type: TransactionType | str = TransactionType.GENERATION,
    db: DatabaseConnection | None = None,
) -> CreditBalance:
    """Atomically subtract credits and record the transaction.

    Args:
        user_id: User to charge.
        amount: Positive number of credits to subtract.
        reason: Human readable description stored on the transaction.
        reference_id: Project or prediction the charge belongs to.
        transaction_type: Ledger transaction type, ``generation`` by default.
        db: Database connection, defaults to the global one.

    Returns:
        The balance after the deduction.

    Raises:
        ValueError: If ``amount`` is not positive.
        CreditError: ``INSUFFICIENT_CREDITS`` if the balance is too low,
            ``USER_NOT_FOUND`` if the user has no balance row,
            ``DB_UNAVAILABLE`` if the database could not be reached.
    """
    if amount <= 0:
        raise ValueError("amount must be a positive number of credits")

    tx_type = TransactionType(transaction_type)
    db = db or get_db()

    try:
        async with db.session() as session:
            result = await session.execute(
                update(User)
                .where(User.user_id == user_id, User.credits_remaining >= amount)
                .values(
                    credits_remaining=User.credits_remaining - amount,
                    lifetime_credits_used=User.lifetime_credits_used + amount,
                    updated_at=utcnow(),
                )
                .returning(
                    User.credits_remaining,
                    User.lifetime_credits_used,
                    User.subscription_tier,
                )
                .execution_options(synchronize_session=False)
            )
            row = result.one_or_none()

            if row is None:
                exists = await session.scalar(select(User.user_id).where(User.user_id == user_id))
                if exists is None:
                    raise CreditError(CreditErrorCode.USER_NOT_FOUND, "User not found")
                raise CreditError(CreditErrorCode.INSUFFICIENT_CREDITS, "Insufficient credits")

            session.add(
                CreditTransaction(
                    user_id=user_id,
                    amount=amount,
                    transaction_type=tx_type.value,
                    description=reason,
                    reference_id=reference_id,
                    balance_after=row.credits_remaining,
                )
            )
            await session.flush()
    except CreditError as e:
        logger.info(
            "Credit deduction refused",
            user_id=user_id,
            amount=amount,
            code=e.code.value,
        )
        raise
    except IntegrityError as e:
        # The CHECK constraint is the last line if a backend ignores the predicate.
        raise CreditError(CreditErrorCode.INSUFFICIENT_CREDITS, "Insufficient credits") from e
    except CONNECTIVITY_ERRORS as e:
        logger.error(
            "Credit ledger unavailable",
            user_id=user_id,
            amount=amount,
            error=str(e),
        )
        raise CreditError(CreditErrorCode.DB_UNAVAILABLE, "Credit database unavailable") from e

    logger.info(
        "Credits deducted",
        user_id=user_id,
        amount=amount,
        reference_id=reference_id,
        credits_remaining=row.credits_remaining,
    )
    return CreditBalance(
        user_id=user_id,
        credits_remaining=row.credits_remaining,
        lifetime_credits_used=row.lifetime_credits_used,
        subscription_tier=row.subscription_tier,
    )


async def add_credits(
    user_id: str,
    amount: int,
    reason: str,
    reference_id: str | None = None,
    transaction_type: TransactionType | str = TransactionType.BONUS,
    db: DatabaseConnection | None = None,
) -> CreditBalance:
    """Atomically grant credits (purchase, refund, bonus...) and record it.

    Raises:
        ValueError: If ``amount`` is not positive or the type is ``generation``.
        CreditError: ``USER_NOT_FOUND`` or ``DB_UNAVAILABLE``.
    """
    if amount <= 0:
        raise ValueError("amount must be a positive number of credits")
    tx_type = TransactionType(transaction_type)
    if tx_type is TransactionType.GENERATION:
        raise ValueError("generation transactions can only deduct credits")

    db = db or get_db()
    try:
        async with db.session() as session:
            result = await session.execute(
                update(User)
                .where(User.user_id == user_id)
                .values(
                    credits_remaining=User.credits_remaining + amount,
                    updated_at=utcnow(),
                )
                .returning(
                    User.credits_remaining,
                    User.lifetime_credits_used,
                    User.subscription_tier,
                )
                .execution_options(synchronize_session=False)
            )
            row = result.one_or_none()
            if row is None:
                raise CreditError(CreditErrorCode.USER_NOT_FOUND, "User not found")

            session.add(
                CreditTransaction(
                    user_id=user_id,
                    amount=amount,
                    transaction_type=tx_type.value,
                    description=reason,
                    reference_id=reference_id,
                    balance_after=row.credits_remaining,
                )
            )
            await session.flush()
    except CONNECTIVITY_ERRORS as e:
        logger.error("Credit ledger unavailable", user_id=user_id, amount=amount, error=str(e))
        raise CreditError(CreditErrorCode.DB_UNAVAILABLE, "Credit database unavailable") from e

    logger.info(
        "Credits added",
        user_id=user_id,
        amount=amount,
        transaction_type=tx_type.value,
        credits_remaining=row.credits_remaining,
    )
    return CreditBalance(
        user_id=user_id,
        credits_remaining=row.credits_remaining,
        lifetime_credits_used=row.lifetime_credits_used,
        subscription_tier=row.subscription_tier,
    )


async def get_user_credits(
    user_id: str,
    db: DatabaseConnection | None = None,
) -> CreditBalance | None:
    """Read a user's balance, or None if the user has no balance row."""
    db = db or get_db()
    try:
        async with db.session() as session:
            user = await session.get(User, user_id)
    except CONNECTIVITY_ERRORS as e:
        raise CreditError(CreditErrorCode.DB_UNAVAILABLE, "Credit database unavailable") from e
    if user is None:
        return None
    return _balance_from_user(user)


async def get_credit_transactions(
    user_id: str,
    limit: int = 20,
    db: DatabaseConnection | None = None,
) -> list[CreditTransaction]:
    """Return a user's most recent transactions, newest first."""
    db = db or get_db()
    try:
        async with db.session() as session:
            result = await session.execute(
                select(CreditTransaction)
                .where(CreditTransaction.user_id == user_id)
                .order_by(CreditTransaction.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
    except CONNECTIVITY_ERRORS as e:
        raise CreditError(CreditErrorCode.DB_UNAVAILABLE, "Credit database unavailable") from e


async def ensure_user(
    user_id: str,
    email: str | None = None,
    db: DatabaseConnection | None = None,
) -> CreditBalance:
    """Find a user's balance, creating the user with the starting balance if needed."""
    db = db or get_db()
    try:
        async with db.session() as session:
            user = await session.get(User, user_id)
            if user is None:
                user = User(
                    user_id=user_id,
                    email=email,
                    credits_remaining=get_settings().credits.default_balance,
                    lifetime_credits_used=0,
                    subscription_tier="free",
                )
                session.add(user)
                await session.flush()
                logger.info("Created new user", user_id=user_id, email=email)
            return _balance_from_user(user)
    except IntegrityError:
        # Another request created the user first.
        balance = await get_user_credits(user_id, db=db)
        if balance is None:
            raise
        return balance
    except CONNECTIVITY_ERRORS as e:
        raise CreditError(CreditErrorCode.DB_UNAVAILABLE, "Credit database unavailable") from e
