from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Numeric, JSON
from sqlalchemy.sql import func

from app.db.base import Base


class BillingPlan(Base):
    """
    Purchasable plan, optionally mirrored to a Stripe product + price.

    ``credits`` of -1 grants unlimited usage.
    """
    __tablename__ = "billing_plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    price = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="usd")
    interval_type = Column(String, nullable=False, default="one_time")  # one_time | monthly | yearly
    credits = Column(Integer, nullable=True)
    features = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)

    stripe_product_id = Column(String, nullable=True, unique=True)
    stripe_price_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
