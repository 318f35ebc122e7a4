"""
Billing plan catalog.

Plans are mirrored to Stripe (one product, one active price). Stripe is
always written first: a plan row never points at a Stripe object that
was not created, and a failed local write is compensated by archiving
what was just created in Stripe.
"""
import json
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.db.models.billing_plan import BillingPlan
from app.schemas.billing_plan import BillingPlanCreate, BillingPlanUpdate
from app.services import stripe_service

logger = logging.getLogger(__name__)

NULLABLE_UPDATE_FIELDS = ("credits",)


class PlanNotFoundError(ValueError):
    pass


class DuplicatePlanError(ValueError):
    pass


def product_metadata(
    credits: Optional[int],
    interval_type: str,
    features: Optional[List[str]] = None,
    sort_order: int = 0,
) -> Dict[str, str]:
    """Stripe metadata read back by the plan synchronizer."""
    metadata = {
        "interval_type": interval_type,
        "features": json.dumps(features or []),
        "sort_order": str(sort_order or 0),
    }
    # Stripe merges metadata on update; an empty value removes the key
    metadata["credits"] = str(credits) if credits is not None else ""
    return metadata


def list_plans(db: Session, active_only: bool = False) -> List[BillingPlan]:
    query = db.query(BillingPlan)
    if active_only:
        query = query.filter(BillingPlan.is_active.is_(True))
        return query.order_by(BillingPlan.price.asc(), BillingPlan.id.asc()).all()
    return query.order_by(BillingPlan.sort_order.asc(), BillingPlan.id.asc()).all()


def get_plan(db: Session, plan_id: int) -> BillingPlan:
    plan = db.query(BillingPlan).filter(BillingPlan.id == plan_id).first()
    if not plan:
        raise PlanNotFoundError(f"Plan {plan_id} not found")
    return plan


def find_plan_by_name(db: Session, name: str) -> Optional[BillingPlan]:
    return db.query(BillingPlan).filter(BillingPlan.name == name).first()


def create_plan(db: Session, data: BillingPlanCreate) -> BillingPlan:
    """
    Create the Stripe product + price, then the local row.

    Raises:
        DuplicatePlanError: A plan with this name already exists
        ExternalServiceError: Stripe rejected the product or price
    """
    if find_plan_by_name(db, data.name):
        raise DuplicatePlanError(f'Plan with name "{data.name}" already exists')

    product = stripe_service.create_product(
        data.name,
        data.description,
        product_metadata(data.credits, data.interval_type, data.features, data.sort_order),
    )
    try:
        price = stripe_service.create_price(product["id"], data.price, data.currency, data.interval_type)
    except stripe_service.ExternalServiceError:
        _archive_quietly(product_id=product["id"])
        raise

    plan = BillingPlan(
        name=data.name,
        description=data.description,
        price=data.price,
        currency=data.currency.lower(),
        interval_type=data.interval_type,
        credits=data.credits,
        features=data.features,
        is_active=data.is_active,
        sort_order=data.sort_order,
        stripe_product_id=product["id"],
        stripe_price_id=price["id"],
    )
    try:
        db.add(plan)
        db.commit()
        db.refresh(plan)
    except Exception as e:
        db.rollback()
        logger.error(f"Billing plan insert failed, archiving Stripe product_id={product['id']}: {e}")
        _archive_quietly(product_id=product["id"], price_id=price["id"])
        raise

    logger.info(f"Created billing plan: plan_id={plan.id}, product_id={product['id']}, price_id={price['id']}")
    return plan


def _archive_quietly(product_id: Optional[str] = None, price_id: Optional[str] = None) -> None:
    """Compensating archive after a failed create; errors are logged, the original failure wins."""
    try:
        if price_id:
            stripe_service.archive_price(price_id)
        if product_id:
            stripe_service.archive_product(product_id)
    except stripe_service.ExternalServiceError as e:
        logger.error(f"Cleanup of Stripe objects failed: product_id={product_id}, price_id={price_id}, error={e}")


def update_plan(db: Session, plan_id: int, data: BillingPlanUpdate) -> BillingPlan:
    """
    Apply a partial update.

    Name/description changes modify the Stripe product in place. A change
    of price, currency or interval creates a new Stripe price, archives the
    old one, and stores the new price id.
    """
    plan = get_plan(db, plan_id)
    # credits may be cleared with an explicit null; other fields ignore null
    changes = {
        k: v for k, v in data.model_dump(exclude_unset=True).items()
        if v is not None or k in NULLABLE_UPDATE_FIELDS
    }

    if "name" in changes and changes["name"] != plan.name:
        other = find_plan_by_name(db, changes["name"])
        if other and other.id != plan.id:
            raise DuplicatePlanError(f'Plan with name "{changes["name"]}" already exists')

    new_name = changes.get("name", plan.name)
    new_description = changes.get("description", plan.description)
    new_price = changes.get("price", plan.price)
    new_currency = changes.get("currency", plan.currency).lower()
    new_interval = changes.get("interval_type", plan.interval_type)
    new_credits = changes.get("credits", plan.credits)
    new_features = changes.get("features", plan.features)
    new_sort_order = changes.get("sort_order", plan.sort_order)

    if plan.stripe_product_id:
        product_changed = new_name != plan.name or new_description != plan.description
        metadata_changed = any(k in changes for k in ("credits", "interval_type", "features", "sort_order"))
        if product_changed or metadata_changed:
            stripe_service.update_product(
                plan.stripe_product_id,
                name=new_name,
                description=new_description,
                metadata=product_metadata(new_credits, new_interval, new_features, new_sort_order),
            )

        price_changed = (
            float(new_price) != float(plan.price)
            or new_currency != plan.currency
            or new_interval != plan.interval_type
        )
        if price_changed:
            old_price_id = plan.stripe_price_id
            price = stripe_service.create_price(plan.stripe_product_id, new_price, new_currency, new_interval)
            if old_price_id:
                stripe_service.archive_price(old_price_id)
            plan.stripe_price_id = price["id"]
            logger.info(f"Re-priced plan_id={plan.id}: old_price_id={old_price_id}, new_price_id={price['id']}")

    plan.name = new_name
    plan.description = new_description
    plan.price = new_price
    plan.currency = new_currency
    plan.interval_type = new_interval
    plan.credits = new_credits
    plan.features = new_features
    plan.sort_order = new_sort_order
    if "is_active" in changes:
        plan.is_active = changes["is_active"]

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(plan)
    logger.info(f"Updated billing plan: plan_id={plan.id}, fields={sorted(changes)}")
    return plan


def delete_plan(db: Session, plan_id: int) -> None:
    """
    Archive the Stripe price and product, then delete the row.

    If archiving fails the exception propagates and the row is kept.
    """
    plan = get_plan(db, plan_id)

    if plan.stripe_price_id:
        stripe_service.archive_price(plan.stripe_price_id)
    if plan.stripe_product_id:
        stripe_service.archive_product(plan.stripe_product_id)

    db.delete(plan)
    db.commit()
    logger.info(f"Deleted billing plan: plan_id={plan_id}")
