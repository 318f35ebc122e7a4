"""
Admin back office: users, dashboard, transactions, settings, maintenance.

Every route except /check requires super_admin through the access guard.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.access_guard import get_admin_role, require_super_admin
from app.core.auth_dependency import get_current_user
from app.db.session import get_db
from app.db.models.user import Profile
from app.schemas.admin import (
    AdminCheckResponse,
    AssignPlanRequest,
    ReconcileResponse,
    SettingResponse,
    SettingsUpdateRequest,
    UserUpdateRequest,
)
from app.services import admin_service
from app.services.billing_plan_service import PlanNotFoundError
from app.services.credit_ledger import InsufficientCreditsError, ProfileNotFoundError, find_balance_drift
from app.services.resume_pipeline import sweep_stuck_resumes
from app.services.settings_service import list_settings, update_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])
public_router = APIRouter(prefix="/api/settings", tags=["Settings"])


@router.get("/check", response_model=AdminCheckResponse)
def admin_check(profile: Profile = Depends(get_current_user)):
    role = None if profile.is_blocked else get_admin_role(profile)
    return AdminCheckResponse(is_admin=role is not None, role=role)


# ============================================
# Users
# ============================================

@router.get("/users")
def list_users(
    search: Optional[str] = None,
    status: Optional[str] = Query(None, pattern="^(active|blocked|all)$"),
    subscription: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: Profile = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    return admin_service.list_users(db, search=search, status=status, subscription=subscription, page=page, limit=limit)


@router.put("/users/{user_id}")
def update_user(
    user_id: int,
    payload: UserUpdateRequest,
    admin: Profile = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    try:
        profile = admin_service.update_user(db, user_id, payload.model_dump(exclude_unset=True), admin_id=admin.id)
    except ProfileNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    except InsufficientCreditsError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except admin_service.InvalidStatusError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return admin_service.profile_summary(profile)


@router.post("/users/{user_id}/assign-plan")
def assign_plan(
    user_id: int,
    payload: AssignPlanRequest,
    admin: Profile = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    try:
        profile = admin_service.assign_plan(db, user_id, payload.plan_id, payload.credits, admin_id=admin.id)
    except ProfileNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    except PlanNotFoundError:
        raise HTTPException(status_code=404, detail="Plan not found")
    return admin_service.profile_summary(profile)


# ============================================
# Dashboard
# ============================================

@router.get("/stats")
def stats(admin: Profile = Depends(require_super_admin), db: Session = Depends(get_db)):
    return admin_service.get_stats(db)


@router.get("/transactions")
def transactions(
    type: Optional[str] = None,
    user_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: Profile = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    return admin_service.list_transactions(db, transaction_type=type, user_id=user_id, page=page, limit=limit)


@router.get("/resumes")
def resumes(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: Profile = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    try:
        return admin_service.list_all_resumes(db, status=status, page=page, limit=limit)
    except admin_service.InvalidStatusError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ============================================
# Settings
# ============================================

@router.get("/settings")
def get_settings(
    category: Optional[str] = None,
    admin: Profile = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    rows = list_settings(db, category=category)
    return {"settings": [SettingResponse.model_validate(r) for r in rows]}


@router.put("/settings")
def put_settings(
    payload: SettingsUpdateRequest,
    admin: Profile = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    if not isinstance(payload.settings, list) or not all(isinstance(s, dict) for s in payload.settings):
        raise HTTPException(status_code=400, detail="Invalid settings format")
    try:
        update_settings(db, payload.settings)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message": "Settings updated successfully"}


@public_router.get("/public")
def public_settings(db: Session = Depends(get_db)):
    rows = list_settings(db, public_only=True)
    return {"settings": [SettingResponse.model_validate(r) for r in rows]}


# ============================================
# Maintenance
# ============================================

@router.post("/maintenance/reconcile", response_model=ReconcileResponse)
def reconcile(admin: Profile = Depends(require_super_admin), db: Session = Depends(get_db)):
    """Demote stuck resumes and report profiles whose balance disagrees with the ledger."""
    demoted = sweep_stuck_resumes(db)
    drift = find_balance_drift(db)
    logger.info(f"Reconcile run by admin_id={admin.id}: demoted={demoted}, drift={len(drift)}")
    return ReconcileResponse(
        stuck_resumes_failed=demoted,
        drift=[
            {
                "user_id": d.user_id,
                "email": d.email,
                "cached_balance": d.cached_balance,
                "ledger_balance": d.ledger_balance,
                "difference": d.difference,
            }
            for d in drift
        ],
    )
