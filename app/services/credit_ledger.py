"""
Credit ledger service.

Every balance change is a CreditTransaction row plus a matching update of
the cached Profile.credits column, committed together in one database
transaction. Debits use a conditional UPDATE so two concurrent requests
cannot both spend the last credit.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from app.core.catalog import UNLIMITED_CREDITS, is_unlimited
from app.db.models.user import Profile
from app.db.models.credit_transaction import CreditTransaction, TRANSACTION_TYPES

logger = logging.getLogger(__name__)


class ProfileNotFoundError(ValueError):
    pass


class InsufficientCreditsError(ValueError):
    """Raised when a debit would take a limited balance below zero."""

    def __init__(self, balance: int, requested: int = 1):
        self.balance = balance
        self.requested = requested
        super().__init__(f"Insufficient credits: balance={balance}, requested={requested}")


@dataclass
class BalanceDrift:
    user_id: int
    email: str
    cached_balance: int
    ledger_balance: int

    @property
    def difference(self) -> int:
        return self.cached_balance - self.ledger_balance


def has_available_credits(profile: Optional[Profile], needed: int = 1) -> bool:
    """Unlimited profiles always pass; limited ones need ``needed`` credits."""
    if profile is None:
        return False
    return is_unlimited(profile.credits) or profile.credits >= needed


def get_balance(db: Session, user_id: int) -> int:
    balance = db.query(Profile.credits).filter(Profile.id == user_id).scalar()
    if balance is None:
        raise ProfileNotFoundError(f"Profile {user_id} not found")
    return balance


def _validate_type(transaction_type: str) -> None:
    if transaction_type not in TRANSACTION_TYPES:
        raise ValueError(f"Invalid transaction type: {transaction_type}")


def _find_by_external_ref(db: Session, external_ref: Optional[str]) -> Optional[CreditTransaction]:
    if not external_ref:
        return None
    return db.query(CreditTransaction).filter(CreditTransaction.external_ref == external_ref).first()


def apply_credit_delta(
    db: Session,
    user_id: int,
    amount: int,
    transaction_type: str,
    description: str,
    resume_id: Optional[int] = None,
    external_ref: Optional[str] = None,
) -> CreditTransaction:
    """
    Apply a signed credit change and record it in the ledger.

    The balance update is a single conditional statement
    (``credits = credits + amount WHERE credits + amount >= 0``); if it
    matches no row the debit is refused and nothing is written. Unlimited
    profiles keep their -1 balance and get a zero-amount row for auditing.

    Args:
        db: Database session
        user_id: Profile ID
        amount: Signed delta (negative for usage)
        transaction_type: purchase | usage | refund | bonus | admin_grant
        description: Human-readable reason
        resume_id: Resume that caused a usage debit, if any
        external_ref: Idempotency key (e.g. Stripe event id)

    Returns:
        The ledger row (the existing one when external_ref was already applied)

    Raises:
        InsufficientCreditsError: Debit would overdraw a limited balance
        ProfileNotFoundError: No such profile
    """
    _validate_type(transaction_type)

    existing = _find_by_external_ref(db, external_ref)
    if existing:
        logger.info(f"Ledger entry already applied: external_ref={external_ref}, transaction_id={existing.id}")
        return existing

    recorded_amount = amount
    try:
        result = db.execute(
            update(Profile)
            .where(
                Profile.id == user_id,
                Profile.credits != UNLIMITED_CREDITS,
                Profile.credits + amount >= 0,
            )
            .values(credits=Profile.credits + amount)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            current = db.query(Profile.credits).filter(Profile.id == user_id).scalar()
            if current is None:
                raise ProfileNotFoundError(f"Profile {user_id} not found")
            if not is_unlimited(current):
                raise InsufficientCreditsError(balance=current, requested=-amount)
            # Unlimited: balance stays -1, usage is logged without a numeric effect
            recorded_amount = 0 if amount < 0 else amount

        entry = CreditTransaction(
            user_id=user_id,
            amount=recorded_amount,
            type=transaction_type,
            description=description,
            resume_id=resume_id,
            external_ref=external_ref,
        )
        db.add(entry)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(entry)
    _expire_profile(db, user_id)

    logger.info(
        f"Credits applied: user_id={user_id}, amount={recorded_amount}, "
        f"type={transaction_type}, transaction_id={entry.id}"
    )
    return entry


def reset_credits(
    db: Session,
    user_id: int,
    new_balance: int,
    transaction_type: str,
    description: str,
    external_ref: Optional[str] = None,
    **profile_fields,
) -> CreditTransaction:
    """
    Overwrite the balance and record the reset amount, in one transaction.

    Used when a subscription starts or an admin assigns a plan: the new
    balance replaces the old one rather than adding to it. Extra keyword
    arguments are written to the profile in the same UPDATE (e.g.
    ``subscription_status``).
    """
    _validate_type(transaction_type)

    existing = _find_by_external_ref(db, external_ref)
    if existing:
        logger.info(f"Credit reset already applied: external_ref={external_ref}")
        return existing

    try:
        result = db.execute(
            update(Profile)
            .where(Profile.id == user_id)
            .values(credits=new_balance, **profile_fields)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ProfileNotFoundError(f"Profile {user_id} not found")

        entry = CreditTransaction(
            user_id=user_id,
            amount=new_balance,
            type=transaction_type,
            description=description,
            external_ref=external_ref,
            is_reset=True,
        )
        db.add(entry)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(entry)
    _expire_profile(db, user_id)

    logger.info(f"Credits reset: user_id={user_id}, balance={new_balance}, type={transaction_type}")
    return entry


def _expire_profile(db: Session, user_id: int) -> None:
    """Drop any cached Profile instance so the next read sees the new balance."""
    profile = db.get(Profile, user_id)
    if profile is not None:
        db.expire(profile)


def list_transactions(db: Session, user_id: int, limit: int = 100) -> List[CreditTransaction]:
    return (
        db.query(CreditTransaction)
        .filter(CreditTransaction.user_id == user_id)
        .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
        .limit(limit)
        .all()
    )


def ledger_sum(db: Session, user_id: int) -> int:
    total = db.query(func.coalesce(func.sum(CreditTransaction.amount), 0)).filter(
        CreditTransaction.user_id == user_id
    ).scalar()
    return int(total)


def find_balance_drift(db: Session) -> List[BalanceDrift]:
    """
    Compare each limited profile's cached balance with its ledger total.

    Profiles whose last balance-setting event was a reset (subscription
    start, plan assignment) are measured from that reset onwards, since a
    reset row records the new absolute balance rather than a delta.
    Unlimited profiles are skipped.
    """
    drift: List[BalanceDrift] = []
    profiles = db.query(Profile).filter(Profile.credits != UNLIMITED_CREDITS).all()

    for profile in profiles:
        expected = _expected_balance(db, profile.id)
        if expected != profile.credits:
            drift.append(BalanceDrift(profile.id, profile.email, profile.credits, expected))
            logger.warning(
                f"Credit balance drift: user_id={profile.id}, cached={profile.credits}, ledger={expected}"
            )

    return drift


def _expected_balance(db: Session, user_id: int) -> int:
    last_reset = (
        db.query(CreditTransaction)
        .filter(
            CreditTransaction.user_id == user_id,
            CreditTransaction.is_reset.is_(True),
        )
        .order_by(CreditTransaction.id.desc())
        .first()
    )
    if last_reset is None:
        return ledger_sum(db, user_id)

    after = db.query(func.coalesce(func.sum(CreditTransaction.amount), 0)).filter(
        CreditTransaction.user_id == user_id,
        CreditTransaction.id > last_reset.id,
    ).scalar()
    return last_reset.amount + int(after)
