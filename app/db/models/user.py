from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base


class Profile(Base):
    """
    One row per identity.

    ``credits`` is a cached projection of the credit ledger; -1 means the
    profile is on an unlimited plan.
    """
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    password_hash = Column(String, nullable=False)

    credits = Column(Integer, nullable=False, default=0)
    subscription_status = Column(String, nullable=False, default="free")  # free | basic | premium | <plan name>
    subscription_id = Column(String, nullable=True, index=True)
    stripe_customer_id = Column(String, nullable=True)

    is_blocked = Column(Boolean, nullable=False, default=False)
    session_version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    admin = relationship("AdminUser", back_populates="profile", uselist=False)
