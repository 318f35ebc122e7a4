import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.access_guard import require_super_admin
from app.db.session import get_db
from app.db.models.user import Profile
from app.schemas.billing_plan import BillingPlanCreate, BillingPlanResponse, BillingPlanUpdate
from app.services import billing_plan_service
from app.services.billing_plan_service import DuplicatePlanError, PlanNotFoundError
from app.services.stripe_service import ExternalServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/billing-plans", tags=["Admin Billing Plans"])


@router.get("", response_model=List[BillingPlanResponse])
def list_billing_plans(admin: Profile = Depends(require_super_admin), db: Session = Depends(get_db)):
    return billing_plan_service.list_plans(db)


@router.post("", response_model=BillingPlanResponse, status_code=status.HTTP_201_CREATED)
def create_billing_plan(
    payload: BillingPlanCreate,
    admin: Profile = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    try:
        return billing_plan_service.create_plan(db, payload)
    except DuplicatePlanError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ExternalServiceError:
        raise HTTPException(status_code=502, detail="Failed to create billing plan in Stripe")
    except Exception as e:
        logger.error(f"Error creating billing plan: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create billing plan")


@router.get("/{plan_id}", response_model=BillingPlanResponse)
def get_billing_plan(plan_id: int, admin: Profile = Depends(require_super_admin), db: Session = Depends(get_db)):
    try:
        return billing_plan_service.get_plan(db, plan_id)
    except PlanNotFoundError:
        raise HTTPException(status_code=404, detail="Plan not found")


@router.put("/{plan_id}", response_model=BillingPlanResponse)
def update_billing_plan(
    plan_id: int,
    payload: BillingPlanUpdate,
    admin: Profile = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    try:
        return billing_plan_service.update_plan(db, plan_id, payload)
    except PlanNotFoundError:
        raise HTTPException(status_code=404, detail="Plan not found")
    except DuplicatePlanError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ExternalServiceError:
        raise HTTPException(status_code=502, detail="Failed to update billing plan in Stripe")


@router.delete("/{plan_id}")
def delete_billing_plan(plan_id: int, admin: Profile = Depends(require_super_admin), db: Session = Depends(get_db)):
    try:
        billing_plan_service.delete_plan(db, plan_id)
    except PlanNotFoundError:
        raise HTTPException(status_code=404, detail="Plan not found")
    except ExternalServiceError:
        raise HTTPException(status_code=502, detail="Failed to archive billing plan in Stripe; plan was kept")
    return {"success": True}
