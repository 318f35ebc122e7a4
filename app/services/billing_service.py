"""
Billing service: checkout sessions and Stripe webhook event processing.

Offers come from the built-in catalog (app.core.catalog) or from active
billing plans, addressed as ``plan_<id>``. Webhook grants carry the Stripe
event id as the ledger external_ref, so a redelivered event is a no-op.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from app.core.catalog import get_credit_package, get_subscription_plan, is_unlimited
from app.core.logging_config import sanitize_log_data
from app.db.models.billing_plan import BillingPlan
from app.db.models.user import Profile
from app.services import stripe_service
from app.services.credit_ledger import apply_credit_delta, reset_credits

logger = logging.getLogger(__name__)

DB_PLAN_PREFIX = "plan_"


class OfferNotFoundError(ValueError):
    pass


class OfferNotPurchasableError(ValueError):
    pass


class PriceNotConfiguredError(ValueError):
    pass


@dataclass(frozen=True)
class Offer:
    id: str
    kind: str  # credits | subscription
    name: str
    price: float
    price_id: Optional[str]
    credits: Optional[int]
    subscription_status: Optional[str] = None


def _resolve_db_plan(db: Session, offer_type: str, offer_id: str) -> Offer:
    raw_id = offer_id[len(DB_PLAN_PREFIX):]
    plan = None
    if raw_id.isdigit():
        plan = db.query(BillingPlan).filter(
            BillingPlan.id == int(raw_id),
            BillingPlan.is_active.is_(True),
        ).first()
    if not plan:
        raise OfferNotFoundError(f"Billing plan '{offer_id}' not found")

    recurring = plan.interval_type in ("monthly", "yearly")
    if (offer_type == "subscription") != recurring:
        raise OfferNotPurchasableError(f"Billing plan '{offer_id}' cannot be bought as {offer_type}")

    return Offer(
        id=offer_id,
        kind=offer_type,
        name=plan.name,
        price=float(plan.price),
        price_id=plan.stripe_price_id,
        credits=plan.credits,
        subscription_status=plan.name.lower() if recurring else None,
    )


def resolve_offer(db: Session, offer_type: str, offer_id: str) -> Offer:
    """
    Map a checkout request to a sellable offer.

    Raises:
        OfferNotFoundError: Unknown package or plan id
        OfferNotPurchasableError: Free plan, or plan of the wrong kind
    """
    if offer_id.startswith(DB_PLAN_PREFIX):
        return _resolve_db_plan(db, offer_type, offer_id)

    if offer_type == "credits":
        package = get_credit_package(offer_id)
        if not package:
            raise OfferNotFoundError(f"Credit package '{offer_id}' not found")
        return Offer(package.id, "credits", package.name, package.price, package.price_id, package.credits)

    plan = get_subscription_plan(offer_id)
    if not plan:
        raise OfferNotFoundError(f"Subscription plan '{offer_id}' not found")
    if plan.price == 0:
        raise OfferNotPurchasableError("Free plan doesn't require payment")
    return Offer(plan.id, "subscription", plan.name, plan.price, plan.price_id, plan.credits, plan.id)


def create_checkout(db: Session, profile: Profile, offer_type: str, offer_id: str) -> Dict[str, str]:
    """
    Create a Stripe Checkout session for a credit package or subscription.

    Raises:
        OfferNotFoundError / OfferNotPurchasableError: Bad request
        PriceNotConfiguredError: Offer exists but has no Stripe price id
        ExternalServiceError: Stripe failure
    """
    offer = resolve_offer(db, offer_type, offer_id)
    if not offer.price_id:
        raise PriceNotConfiguredError(f"Price ID not configured for '{offer_id}'")

    metadata = {
        "user_id": str(profile.id),
        "type": offer_type,
        "package_id": offer_id if offer_type == "credits" else "",
        "plan_id": offer_id if offer_type == "subscription" else "",
    }
    mode = "subscription" if offer_type == "subscription" else "payment"
    return stripe_service.create_checkout_session(profile.id, profile.email, offer.price_id, mode, metadata)


def _load_profile(db: Session, user_id: Optional[str]) -> Optional[Profile]:
    if not user_id or not str(user_id).isdigit():
        return None
    return db.query(Profile).filter(Profile.id == int(user_id)).first()


def handle_checkout_session_completed(event: Dict[str, Any], db: Session) -> str:
    """
    Credit purchase: additive grant. Subscription: overwrite subscription
    fields and reset the balance to the plan's grant.
    """
    session = event["data"]["object"]
    metadata = session.get("metadata") or {}
    offer_type = metadata.get("type")
    offer_id = metadata.get("package_id") if offer_type == "credits" else metadata.get("plan_id")

    profile = _load_profile(db, metadata.get("user_id"))
    if not profile:
        logger.warning(f"checkout.session.completed: profile not found, metadata={sanitize_log_data(metadata)}")
        return "ignored"
    if offer_type not in ("credits", "subscription") or not offer_id:
        logger.warning(f"checkout.session.completed: unknown offer, metadata={sanitize_log_data(metadata)}")
        return "ignored"

    try:
        offer = resolve_offer(db, offer_type, offer_id)
    except ValueError as e:
        logger.warning(f"checkout.session.completed: {e}")
        return "ignored"

    event_id = event.get("id")

    if offer_type == "credits":
        credits = offer.credits or 0
        if is_unlimited(credits):
            reset_credits(db, profile.id, credits, "purchase", f"Purchased {offer.name} (unlimited)", external_ref=event_id)
        else:
            apply_credit_delta(db, profile.id, credits, "purchase", f"Purchased {credits} credits", external_ref=event_id)
        logger.info(f"Credit purchase applied: user_id={profile.id}, offer={offer.id}, credits={credits}")
        return "handled"

    subscription_fields = {
        "subscription_status": offer.subscription_status,
        "subscription_id": session.get("subscription"),
    }
    if session.get("customer"):
        subscription_fields["stripe_customer_id"] = session.get("customer")

    if offer.credits is None:
        for name, value in subscription_fields.items():
            setattr(profile, name, value)
        db.commit()
    else:
        reset_credits(
            db,
            profile.id,
            offer.credits,
            "purchase",
            f"{offer.name} subscription - {offer.credits} credits",
            external_ref=event_id,
            **subscription_fields,
        )
    logger.info(
        f"Subscription started: user_id={profile.id}, plan={offer.id}, "
        f"subscription_id={subscription_fields['subscription_id']}"
    )
    return "handled"


def _invoice_subscription_id(invoice: Dict[str, Any]) -> Optional[str]:
    subscription_id = invoice.get("subscription")
    if isinstance(subscription_id, dict):
        return subscription_id.get("id")
    if subscription_id:
        return subscription_id
    # Newer API versions nest it under parent.subscription_details
    parent = invoice.get("parent") or {}
    return (parent.get("subscription_details") or {}).get("subscription")


def monthly_grant_for_status(db: Session, subscription_status: str):
    """Return (plan name, credits) for a subscription status tag, or None."""
    plan = get_subscription_plan(subscription_status)
    if plan:
        return plan.name, plan.credits
    billing_plan = db.query(BillingPlan).filter(
        func.lower(BillingPlan.name) == (subscription_status or "").lower(),
        BillingPlan.interval_type.in_(("monthly", "yearly")),
    ).first()
    if billing_plan and billing_plan.credits is not None:
        return billing_plan.name, billing_plan.credits
    return None


def handle_invoice_payment_succeeded(event: Dict[str, Any], db: Session) -> str:
    """Renewal: additive re-grant of the plan's credits (not a reset)."""
    invoice = event["data"]["object"]
    subscription_id = _invoice_subscription_id(invoice)
    if not subscription_id:
        logger.warning("invoice.payment_succeeded: No subscription ID in invoice")
        return "ignored"

    profile = db.query(Profile).filter(Profile.subscription_id == subscription_id).first()
    if not profile:
        logger.warning(f"invoice.payment_succeeded: profile not found for subscription_id={subscription_id}")
        return "ignored"

    grant = monthly_grant_for_status(db, profile.subscription_status)
    if not grant:
        logger.warning(f"invoice.payment_succeeded: no plan for status={profile.subscription_status}")
        return "ignored"

    plan_name, credits = grant
    if is_unlimited(credits):
        reset_credits(db, profile.id, credits, "purchase", f"Monthly {plan_name} subscription (unlimited)", external_ref=event.get("id"))
    else:
        apply_credit_delta(
            db,
            profile.id,
            credits,
            "purchase",
            f"Monthly {plan_name} subscription credits",
            external_ref=event.get("id"),
        )
    logger.info(f"Invoice payment succeeded: user_id={profile.id}, subscription_id={subscription_id}, credits={credits}")
    return "handled"


def handle_subscription_deleted(event: Dict[str, Any], db: Session) -> str:
    """Downgrade to free; the credit balance is left as it is."""
    subscription = event["data"]["object"]
    subscription_id = subscription.get("id")
    if not subscription_id:
        return "ignored"

    result = db.execute(
        update(Profile)
        .where(Profile.subscription_id == subscription_id)
        .values(subscription_status="free", subscription_id=None)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.expire_all()
    logger.info(f"Subscription cancelled: subscription_id={subscription_id}, profiles={result.rowcount}")
    return "handled" if result.rowcount else "ignored"


WEBHOOK_HANDLERS: Dict[str, Callable[[Dict[str, Any], Session], str]] = {
    "checkout.session.completed": handle_checkout_session_completed,
    "invoice.payment_succeeded": handle_invoice_payment_succeeded,
    "customer.subscription.deleted": handle_subscription_deleted,
}


def process_webhook_event(event: Dict[str, Any], db: Session) -> str:
    """Dispatch a verified event. Unhandled types are logged and acknowledged."""
    event_type = event.get("type")
    handler = WEBHOOK_HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Unhandled event type: {event_type}")
        return "ignored"
    return handler(event, db)
