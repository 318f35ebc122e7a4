"""
Built-in commercial catalog.

Single source of truth for the subscription tiers and credit packages sold
through Stripe Checkout. Admin-managed billing plans live in the database
(see app.db.models.billing_plan) and are resolved alongside these.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from app.core.config import (
    STRIPE_BASIC_PRICE_ID,
    STRIPE_PREMIUM_PRICE_ID,
    STRIPE_CREDITS_50_PRICE_ID,
    STRIPE_CREDITS_100_PRICE_ID,
    STRIPE_CREDITS_250_PRICE_ID,
    STRIPE_CREDITS_500_PRICE_ID,
)

# Credit grant meaning "no limit"
UNLIMITED_CREDITS = -1

SUBSCRIPTION_STATUSES: List[str] = ["free", "basic", "premium"]


@dataclass(frozen=True)
class SubscriptionPlan:
    id: str
    name: str
    description: str
    price: float
    price_id: Optional[str]
    interval: str
    credits: int
    features: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CreditPackage:
    id: str
    name: str
    credits: int
    price: float
    price_id: Optional[str]
    savings: Optional[str] = None


SUBSCRIPTION_PLANS: Dict[str, SubscriptionPlan] = {
    "free": SubscriptionPlan(
        id="free",
        name="Free",
        description="Perfect for trying out our service",
        price=0,
        price_id=None,
        interval="month",
        credits=10,
        features=["10 resume analyses", "Basic AI parsing", "PDF & Word support"],
    ),
    "basic": SubscriptionPlan(
        id="basic",
        name="Basic",
        description="Great for job seekers and professionals",
        price=9.99,
        price_id=STRIPE_BASIC_PRICE_ID,
        interval="month",
        credits=100,
        features=["100 resume analyses per month", "Advanced AI parsing", "Priority email support"],
    ),
    "premium": SubscriptionPlan(
        id="premium",
        name="Premium",
        description="Perfect for recruiters and HR teams",
        price=29.99,
        price_id=STRIPE_PREMIUM_PRICE_ID,
        interval="month",
        credits=500,
        features=["500 resume analyses per month", "Bulk processing", "24/7 priority support"],
    ),
}

CREDIT_PACKAGES: Dict[str, CreditPackage] = {
    "credits_50": CreditPackage("credits_50", "50 Credits", 50, 4.99, STRIPE_CREDITS_50_PRICE_ID),
    "credits_100": CreditPackage("credits_100", "100 Credits", 100, 8.99, STRIPE_CREDITS_100_PRICE_ID, "Save 10%"),
    "credits_250": CreditPackage("credits_250", "250 Credits", 250, 19.99, STRIPE_CREDITS_250_PRICE_ID, "Save 20%"),
    "credits_500": CreditPackage("credits_500", "500 Credits", 500, 34.99, STRIPE_CREDITS_500_PRICE_ID, "Save 30%"),
}


def get_subscription_plan(plan_id: Optional[str]) -> Optional[SubscriptionPlan]:
    """Get a built-in subscription plan by id."""
    if not plan_id:
        return None
    return SUBSCRIPTION_PLANS.get(plan_id.lower())


def get_credit_package(package_id: Optional[str]) -> Optional[CreditPackage]:
    """Get a built-in credit package by id."""
    if not package_id:
        return None
    return CREDIT_PACKAGES.get(package_id)


def is_unlimited(credits: Optional[int]) -> bool:
    return credits == UNLIMITED_CREDITS
