"""
Plan synchronizer: reconcile Stripe's active catalog into billing_plans.

Each pass is idempotent. Plans are matched by Stripe product id first,
then by name for rows that are not linked to any product yet. A failure
on one product is recorded and the pass continues with the next one.
"""
import csv
import io
import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.db.models.billing_plan import BillingPlan
from app.schemas.billing_plan import BillingPlanCreate
from app.services import stripe_service
from app.services.billing_plan_service import DuplicatePlanError, create_plan
from app.services.settings_service import record_stripe_sync

logger = logging.getLogger(__name__)

CSV_COLUMNS = ("name", "description", "price", "interval_type", "credits", "features", "sort_order")


def _product_id_of(price: Dict[str, Any]) -> Optional[str]:
    product = price.get("product")
    if isinstance(product, dict):
        return product.get("id")
    return product


def group_prices_by_product(prices: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for price in prices:
        product_id = _product_id_of(price)
        if product_id:
            grouped.setdefault(product_id, []).append(price)
    return grouped


def select_primary_price(product: Dict[str, Any], prices: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Prefer the product's default price when active, then any active price, then the first."""
    if not prices:
        return None
    default_price = product.get("default_price")
    default_id = default_price.get("id") if isinstance(default_price, dict) else default_price
    for price in prices:
        if price.get("id") == default_id and price.get("active", True):
            return price
    for price in prices:
        if price.get("active", True):
            return price
    return prices[0]


def plan_fields_from_stripe(product: Dict[str, Any], price: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a Stripe product + price to billing plan columns.

    Raises:
        ValueError: Malformed credits, features, or sort_order metadata
    """
    metadata = product.get("metadata") or {}

    credits_raw = metadata.get("credits")
    credits = int(credits_raw) if credits_raw not in (None, "") else None

    features_raw = metadata.get("features")
    features = json.loads(features_raw) if features_raw else []
    if not isinstance(features, list):
        raise ValueError("features metadata must be a JSON list")

    unit_amount = price.get("unit_amount")
    return {
        "name": product.get("name"),
        "description": product.get("description") or "",
        "price": unit_amount / 100 if unit_amount else 0,
        "currency": (price.get("currency") or "usd").lower(),
        "interval_type": stripe_service.to_interval_type(price),
        "credits": credits,
        "features": features,
        "stripe_product_id": product["id"],
        "stripe_price_id": price.get("id"),
        "is_active": bool(product.get("active", True)),
        "sort_order": int(metadata.get("sort_order") or 0),
    }


def _find_existing(db: Session, product: Dict[str, Any]) -> Optional[BillingPlan]:
    plan = db.query(BillingPlan).filter(BillingPlan.stripe_product_id == product["id"]).first()
    if plan:
        return plan
    return (
        db.query(BillingPlan)
        .filter(BillingPlan.name == product.get("name"), BillingPlan.stripe_product_id.is_(None))
        .first()
    )


def sync_product(db: Session, product: Dict[str, Any], prices: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Upsert the plan for one Stripe product and commit. Returns the per-item result."""
    result = {"product_id": product["id"], "product": product.get("name") or product["id"]}

    primary = select_primary_price(product, prices)
    if primary is None:
        logger.info(f"Skipping Stripe product without prices: product_id={product['id']}")
        return {**result, "action": "skipped", "error": "No active price"}

    fields = plan_fields_from_stripe(product, primary)
    plan = _find_existing(db, product)
    if plan:
        for name, value in fields.items():
            setattr(plan, name, value)
        action = "updated"
    else:
        plan = BillingPlan(**fields)
        db.add(plan)
        action = "created"

    db.commit()
    db.refresh(plan)
    logger.info(f"Synced Stripe product: product_id={product['id']}, plan_id={plan.id}, action={action}")
    return {**result, "action": action, "plan_id": plan.id}


def sync_from_stripe(db: Session) -> Dict[str, Any]:
    """
    Run one reconciliation pass over Stripe's active products.

    Listing failures abort the pass (ExternalServiceError propagates);
    per-product failures are rolled back and reported in ``errors``.
    """
    products = stripe_service.list_active_products()
    prices_by_product = group_prices_by_product(stripe_service.list_active_prices())

    results: List[Dict[str, Any]] = []
    errors: List[Dict[str, Any]] = []
    for product in products:
        try:
            results.append(sync_product(db, product, prices_by_product.get(product["id"], [])))
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to sync Stripe product_id={product.get('id')}: {e}")
            errors.append({
                "product_id": product.get("id"),
                "product": product.get("name") or product.get("id"),
                "action": "error",
                "error": str(e),
            })

    record_stripe_sync(db)
    synced = sum(1 for r in results if r["action"] in ("created", "updated"))
    logger.info(f"Stripe sync finished: synced={synced}, skipped={len(results) - synced}, errors={len(errors)}")
    return {
        "success": not errors,
        "message": f"Synced {synced} products" + (f", {len(errors)} failed" if errors else ""),
        "results": results,
        "errors": errors,
    }


def parse_plan_csv(text: str) -> List[Dict[str, Any]]:
    """
    Parse bulk-upload CSV rows.

    Columns: name, description, price, interval_type, credits, features
    (pipe-separated), sort_order. Empty credits means no grant; values are
    left as strings for BillingPlanCreate to validate.
    """
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    if not reader.fieldnames or "name" not in [f.strip() for f in reader.fieldnames]:
        raise ValueError(f"CSV header must include: {', '.join(CSV_COLUMNS)}")

    rows = []
    for raw in reader:
        row = {k.strip(): (v or "").strip() for k, v in raw.items() if k is not None}
        if not any(row.values()):
            continue
        features = [f.strip() for f in row.get("features", "").split("|") if f.strip()]
        rows.append({
            "name": row.get("name"),
            "description": row.get("description"),
            "price": row.get("price") or None,
            "currency": row.get("currency") or "usd",
            "interval_type": row.get("interval_type"),
            "credits": row.get("credits") or None,
            "features": features,
            "sort_order": row.get("sort_order") or 0,
        })
    return rows


def bulk_create_plans(db: Session, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Create a Stripe product + price + billing plan per row, isolating failures per row."""
    results = []
    for index, row in enumerate(rows, start=1):
        name = row.get("name")
        try:
            data = BillingPlanCreate.model_validate(row)
            plan = create_plan(db, data)
            results.append({"row": index, "name": name, "success": True, "plan_id": plan.id})
        except ValidationError as e:
            message = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
            results.append({"row": index, "name": name, "success": False, "error": message})
        except (DuplicatePlanError, stripe_service.ExternalServiceError) as e:
            results.append({"row": index, "name": name, "success": False, "error": str(e)})
        except Exception as e:
            db.rollback()
            logger.error(f"Bulk upload row {index} failed: {e}")
            results.append({"row": index, "name": name, "success": False, "error": "Failed to create plan"})

    created = sum(1 for r in results if r["success"])
    if created:
        record_stripe_sync(db)
    logger.info(f"Bulk plan upload finished: created={created}, failed={len(results) - created}")
    return {"success": created == len(results), "created": created, "failed": len(results) - created, "results": results}
