"""
Stripe service: catalog (products/prices), checkout sessions, and webhook
verification.

Every function returns plain dicts so callers and tests never depend on
StripeObject behaviour. SDK failures surface as ExternalServiceError.
"""
import logging
from typing import Dict, List, Optional, Any

import stripe

from app.core.config import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET, FRONTEND_URL

logger = logging.getLogger(__name__)

# Initialize Stripe client
if STRIPE_SECRET_KEY:
    stripe.api_key = STRIPE_SECRET_KEY
else:
    logger.warning("STRIPE_SECRET_KEY not configured - Stripe features disabled")

# Local interval_type -> Stripe recurring.interval
STRIPE_INTERVALS = {"monthly": "month", "yearly": "year"}


class ExternalServiceError(Exception):
    """A call to Stripe (or another provider) failed."""


class WebhookVerificationError(ValueError):
    """Payload or signature did not verify against the webhook secret."""


def _as_dict(obj: Any) -> Dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, dict) and not hasattr(obj, "to_dict"):
        return obj
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


def _require_configured() -> None:
    if not STRIPE_SECRET_KEY:
        raise ExternalServiceError("Stripe not configured - STRIPE_SECRET_KEY required")


def to_stripe_interval(interval_type: str) -> Optional[str]:
    """Map monthly/yearly to Stripe's month/year; one_time has no recurring block."""
    return STRIPE_INTERVALS.get(interval_type)


def to_interval_type(price: Dict[str, Any]) -> str:
    """Map a Stripe price's recurring.interval back to monthly/yearly/one_time."""
    recurring = price.get("recurring") or {}
    interval = recurring.get("interval")
    if interval == "month":
        return "monthly"
    if interval == "year":
        return "yearly"
    return "one_time"


def to_unit_amount(price: float) -> int:
    """Dollars to cents."""
    return int(round(float(price) * 100))


def create_product(name: str, description: Optional[str], metadata: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    _require_configured()
    try:
        product = stripe.Product.create(
            name=name,
            description=description or None,
            metadata=metadata or {},
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating product name={name}: {e}")
        raise ExternalServiceError(f"Failed to create Stripe product: {e}") from e

    product = _as_dict(product)
    logger.info(f"Created Stripe product: product_id={product['id']}, name={name}")
    return product


def update_product(product_id: str, **fields) -> Dict[str, Any]:
    """Modify a product in place (name, description, metadata, active)."""
    _require_configured()
    params = {k: v for k, v in fields.items() if v is not None}
    try:
        product = stripe.Product.modify(product_id, **params)
    except stripe.StripeError as e:
        logger.error(f"Stripe error updating product_id={product_id}: {e}")
        raise ExternalServiceError(f"Failed to update Stripe product: {e}") from e

    logger.info(f"Updated Stripe product: product_id={product_id}, fields={sorted(params)}")
    return _as_dict(product)


def archive_product(product_id: str) -> None:
    update_product(product_id, active=False)
    logger.info(f"Archived Stripe product: product_id={product_id}")


def create_price(product_id: str, amount: float, currency: str, interval_type: str) -> Dict[str, Any]:
    """
    Create a price for a product.

    Args:
        product_id: Stripe product id
        amount: Price in major units (e.g. 9.99)
        currency: ISO currency code
        interval_type: one_time | monthly | yearly
    """
    _require_configured()
    params: Dict[str, Any] = {
        "product": product_id,
        "unit_amount": to_unit_amount(amount),
        "currency": (currency or "usd").lower(),
    }
    stripe_interval = to_stripe_interval(interval_type)
    if stripe_interval:
        params["recurring"] = {"interval": stripe_interval}

    try:
        price = stripe.Price.create(**params)
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating price for product_id={product_id}: {e}")
        raise ExternalServiceError(f"Failed to create Stripe price: {e}") from e

    price = _as_dict(price)
    logger.info(f"Created Stripe price: price_id={price['id']}, product_id={product_id}, interval={interval_type}")
    return price


def archive_price(price_id: str) -> None:
    """Deactivate a price. Stripe prices are never deleted."""
    _require_configured()
    try:
        stripe.Price.modify(price_id, active=False)
    except stripe.StripeError as e:
        logger.error(f"Stripe error archiving price_id={price_id}: {e}")
        raise ExternalServiceError(f"Failed to archive Stripe price: {e}") from e
    logger.info(f"Archived Stripe price: price_id={price_id}")


def list_active_products() -> List[Dict[str, Any]]:
    _require_configured()
    try:
        return [_as_dict(p) for p in stripe.Product.list(active=True, limit=100).auto_paging_iter()]
    except stripe.StripeError as e:
        logger.error(f"Stripe error listing products: {e}")
        raise ExternalServiceError(f"Failed to list Stripe products: {e}") from e


def list_active_prices(product_id: Optional[str] = None) -> List[Dict[str, Any]]:
    _require_configured()
    params: Dict[str, Any] = {"active": True, "limit": 100}
    if product_id:
        params["product"] = product_id
    try:
        return [_as_dict(p) for p in stripe.Price.list(**params).auto_paging_iter()]
    except stripe.StripeError as e:
        logger.error(f"Stripe error listing prices: {e}")
        raise ExternalServiceError(f"Failed to list Stripe prices: {e}") from e


def create_checkout_session(
    user_id: int,
    user_email: str,
    price_id: str,
    mode: str,
    metadata: Dict[str, str],
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a Stripe Checkout session.

    Args:
        user_id: Profile id
        user_email: Prefilled customer email
        price_id: Stripe price to sell (quantity 1)
        mode: "payment" for credit packages, "subscription" for plans
        metadata: Opaque data read back by the webhook (user_id, type, ids)
        success_url: Defaults to FRONTEND_URL/dashboard/billing?success=true
        cancel_url: Defaults to FRONTEND_URL/pricing?canceled=true

    Returns:
        Dictionary with 'url' and 'session_id'
    """
    _require_configured()

    if not success_url:
        success_url = f"{FRONTEND_URL}/dashboard/billing?success=true&session_id={{CHECKOUT_SESSION_ID}}"
    if not cancel_url:
        cancel_url = f"{FRONTEND_URL}/pricing?canceled=true"

    params: Dict[str, Any] = {
        "customer_email": user_email,
        "line_items": [{"price": price_id, "quantity": 1}],
        "mode": mode,
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": metadata,
    }
    if mode == "subscription":
        params["subscription_data"] = {"metadata": metadata}
    else:
        params["payment_intent_data"] = {"metadata": metadata}

    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating checkout session for user_id={user_id}: {e}")
        raise ExternalServiceError(f"Failed to create checkout session: {e}") from e

    logger.info(f"Created checkout session for user_id={user_id}, session_id={session.id}, mode={mode}")
    return {"url": session.url, "session_id": session.id}


def construct_event(payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """
    Verify a webhook payload against STRIPE_WEBHOOK_SECRET.

    Raises:
        WebhookVerificationError: Missing secret or signature, bad payload, bad signature
    """
    if not STRIPE_WEBHOOK_SECRET:
        raise WebhookVerificationError("STRIPE_WEBHOOK_SECRET not configured")
    if not signature:
        raise WebhookVerificationError("Missing Stripe-Signature header")

    try:
        event = stripe.Webhook.construct_event(payload, signature, STRIPE_WEBHOOK_SECRET)
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        raise WebhookVerificationError(f"Invalid webhook payload: {e}") from e
    except stripe.SignatureVerificationError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise WebhookVerificationError(f"Invalid signature: {e}") from e

    event = _as_dict(event)
    logger.info(f"Verified webhook event: {event.get('type')}, id={event.get('id')}")
    return event
