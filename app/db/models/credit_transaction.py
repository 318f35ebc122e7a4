from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from app.db.base import Base

TRANSACTION_TYPES = ("purchase", "usage", "refund", "bonus", "admin_grant")


class CreditTransaction(Base):
    """
    Append-only credit ledger row.

    ``amount`` is signed: positive grants, negative debits. ``external_ref``
    holds the id of the external event that caused the entry (Stripe event
    id) and is unique so a redelivered event cannot be applied twice.
    Rows with ``is_reset`` record the balance a reset set, not a delta.
    """
    __tablename__ = "credit_transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    type = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True)
    resume_id = Column(Integer, ForeignKey("resumes.id", ondelete="SET NULL"), nullable=True)
    external_ref = Column(String, nullable=True, unique=True)
    is_reset = Column(Boolean, nullable=False, default=False)  # amount is an absolute balance, not a delta
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        Index("idx_credit_tx_user_created", "user_id", "created_at"),
    )
