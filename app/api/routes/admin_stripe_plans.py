"""
Direct management of the Stripe catalog, plus sync and CSV bulk upload
into billing plans.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from app.core.access_guard import require_super_admin
from app.db.session import get_db
from app.db.models.user import Profile
from app.schemas.billing_plan import (
    BulkUploadResponse,
    StripePlanCreate,
    StripePlanUpdate,
    StripeProductResponse,
    SyncResponse,
)
from app.services import plan_sync, stripe_service
from app.services.billing_plan_service import product_metadata
from app.services.stripe_service import ExternalServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/stripe-plans", tags=["Admin Stripe Plans"])

MAX_CSV_BYTES = 1024 * 1024


@router.get("", response_model=List[StripeProductResponse])
def list_stripe_plans(admin: Profile = Depends(require_super_admin)):
    """Active Stripe products, each with its active prices."""
    try:
        products = stripe_service.list_active_products()
        prices = plan_sync.group_prices_by_product(stripe_service.list_active_prices())
    except ExternalServiceError:
        raise HTTPException(status_code=502, detail="Failed to fetch Stripe plans")

    return [
        StripeProductResponse(
            id=p["id"],
            name=p.get("name") or "",
            description=p.get("description"),
            active=p.get("active", True),
            metadata=p.get("metadata") or {},
            prices=prices.get(p["id"], []),
        )
        for p in products
    ]


@router.post("")
def create_stripe_plan(payload: StripePlanCreate, admin: Profile = Depends(require_super_admin)):
    """Create a Stripe product and price without a local billing plan."""
    try:
        product = stripe_service.create_product(
            payload.name,
            payload.description,
            product_metadata(payload.credits, payload.interval_type),
        )
        price = stripe_service.create_price(product["id"], payload.price, payload.currency, payload.interval_type)
    except ExternalServiceError:
        raise HTTPException(status_code=502, detail="Failed to create Stripe plan")
    return {"success": True, "product": product, "price": price}


@router.put("/{product_id}")
def update_stripe_plan(product_id: str, payload: StripePlanUpdate, admin: Profile = Depends(require_super_admin)):
    try:
        product = stripe_service.update_product(
            product_id,
            name=payload.name,
            description=payload.description,
            metadata=payload.metadata,
        )
    except ExternalServiceError:
        raise HTTPException(status_code=502, detail="Failed to update Stripe plan")
    return {"success": True, "product": product}


@router.delete("/{product_id}")
def delete_stripe_plan(product_id: str, admin: Profile = Depends(require_super_admin)):
    """Archive every active price of the product, then the product."""
    try:
        for price in stripe_service.list_active_prices(product_id):
            stripe_service.archive_price(price["id"])
        stripe_service.archive_product(product_id)
    except ExternalServiceError:
        raise HTTPException(status_code=502, detail="Failed to delete Stripe plan")
    return {"success": True}


@router.post("/sync", response_model=SyncResponse)
def sync_stripe_plans(admin: Profile = Depends(require_super_admin), db: Session = Depends(get_db)):
    try:
        result = plan_sync.sync_from_stripe(db)
    except ExternalServiceError:
        raise HTTPException(status_code=502, detail="Failed to sync with Stripe")
    logger.info(f"Stripe sync run by admin_id={admin.id}: {result['message']}")
    return result


@router.post("/bulk-upload", response_model=BulkUploadResponse)
def bulk_upload(
    file: UploadFile = File(...),
    admin: Profile = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    content = file.file.read(MAX_CSV_BYTES + 1)
    if len(content) > MAX_CSV_BYTES:
        raise HTTPException(status_code=400, detail="CSV file too large")
    try:
        rows = plan_sync.parse_plan_csv(content.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid CSV: {e}")
    if not rows:
        raise HTTPException(status_code=400, detail="CSV contains no plans")

    result = plan_sync.bulk_create_plans(db, rows)
    logger.info(f"Bulk upload run by admin_id={admin.id}: created={result['created']}, failed={result['failed']}")
    return result
