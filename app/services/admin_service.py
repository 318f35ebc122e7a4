"""
Back-office queries and mutations: users, plan assignment, dashboard stats.

Every credit change made here goes through the credit ledger.
"""
import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.catalog import SUBSCRIPTION_STATUSES
from app.db.models.billing_plan import BillingPlan
from app.db.models.credit_transaction import CreditTransaction
from app.db.models.resume import Resume, RESUME_STATUSES
from app.db.models.user import Profile
from app.services.billing_plan_service import get_plan
from app.services.credit_ledger import ProfileNotFoundError, apply_credit_delta, reset_credits

logger = logging.getLogger(__name__)

# Revenue estimate used on the dashboard
REVENUE_PER_PURCHASED_CREDIT = 0.10


class InvalidStatusError(ValueError):
    """Unknown subscription or resume status."""


def _count_by_user(db: Session, column, user_ids: List[int]) -> Dict[int, int]:
    if not user_ids:
        return {}
    rows = db.query(column, func.count()).filter(column.in_(user_ids)).group_by(column).all()
    return {user_id: count for user_id, count in rows}


def list_users(
    db: Session,
    search: Optional[str] = None,
    status: Optional[str] = None,
    subscription: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> Dict[str, Any]:
    """
    Filtered, paginated profile listing with per-user resume and transaction counts.

    Args:
        search: Case-insensitive match on full name or email
        status: "active" | "blocked" | None
        subscription: Subscription status tag, or "all"/None
    """
    page = max(page, 1)
    limit = min(max(limit, 1), 200)

    query = db.query(Profile)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Profile.full_name.ilike(pattern), Profile.email.ilike(pattern)))
    if status == "active":
        query = query.filter(Profile.is_blocked.is_(False))
    elif status == "blocked":
        query = query.filter(Profile.is_blocked.is_(True))
    if subscription and subscription != "all":
        query = query.filter(Profile.subscription_status == subscription)

    total = query.count()
    profiles = (
        query.order_by(Profile.created_at.desc(), Profile.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    ids = [p.id for p in profiles]
    resume_counts = _count_by_user(db, Resume.user_id, ids)
    transaction_counts = _count_by_user(db, CreditTransaction.user_id, ids)

    users = []
    for profile in profiles:
        users.append({
            **profile_summary(profile),
            "resume_count": resume_counts.get(profile.id, 0),
            "transaction_count": transaction_counts.get(profile.id, 0),
        })

    return {
        "users": users,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
    }


def profile_summary(profile: Profile) -> Dict[str, Any]:
    return {
        "id": profile.id,
        "email": profile.email,
        "full_name": profile.full_name,
        "credits": profile.credits,
        "subscription_status": profile.subscription_status,
        "is_blocked": profile.is_blocked,
        "admin_role": profile.admin.role if profile.admin else None,
        "created_at": profile.created_at,
    }


def _get_profile(db: Session, user_id: int) -> Profile:
    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if not profile:
        raise ProfileNotFoundError(f"Profile {user_id} not found")
    return profile


def _validate_subscription_status(db: Session, value: str) -> str:
    """Accept a built-in tier or the lowercased name of a billing plan."""
    status = value.strip().lower()
    if status in SUBSCRIPTION_STATUSES:
        return status
    if db.query(BillingPlan.id).filter(func.lower(BillingPlan.name) == status).first():
        return status
    raise InvalidStatusError(f"Unknown subscription status: {value}")


def update_user(db: Session, user_id: int, changes: Dict[str, Any], admin_id: Optional[int] = None) -> Profile:
    """
    Edit profile fields. A new ``credits`` value is applied through the
    ledger as an admin_grant of the difference.
    """
    profile = _get_profile(db, user_id)
    if changes.get("subscription_status") is not None:
        changes["subscription_status"] = _validate_subscription_status(db, changes["subscription_status"])

    new_credits = changes.pop("credits", None)
    for name in ("full_name", "subscription_status", "is_blocked"):
        if changes.get(name) is not None:
            setattr(profile, name, changes[name])
    db.commit()

    if new_credits is not None and new_credits != profile.credits:
        if new_credits == -1 or profile.credits == -1:
            reset_credits(db, user_id, new_credits, "admin_grant", f"Admin set credits to {new_credits}")
        else:
            delta = new_credits - profile.credits
            apply_credit_delta(db, user_id, delta, "admin_grant", f"Admin adjusted credits by {delta:+d}")

    db.refresh(profile)
    logger.info(f"Admin updated user: user_id={user_id}, admin_id={admin_id}, credits={new_credits}")
    return profile


def assign_plan(db: Session, user_id: int, plan_id: int, credits: Optional[int] = None, admin_id: Optional[int] = None) -> Profile:
    """
    Put a user on a billing plan: subscription status becomes the plan's
    name (lowercased) and credits are reset to ``credits`` or the plan's grant.

    Raises:
        ProfileNotFoundError / PlanNotFoundError
    """
    profile = _get_profile(db, user_id)
    plan: BillingPlan = get_plan(db, plan_id)
    new_balance = credits if credits is not None else (plan.credits or 0)

    reset_credits(
        db,
        profile.id,
        new_balance,
        "admin_grant",
        f"Admin assigned {plan.name} plan",
        subscription_status=plan.name.lower(),
    )
    db.refresh(profile)
    logger.info(f"Admin assigned plan: user_id={user_id}, plan_id={plan_id}, credits={new_balance}, admin_id={admin_id}")
    return profile


def get_stats(db: Session, recent_limit: int = 5) -> Dict[str, Any]:
    total_users = db.query(func.count(Profile.id)).scalar() or 0
    blocked_users = db.query(func.count(Profile.id)).filter(Profile.is_blocked.is_(True)).scalar() or 0

    status_counts = dict(db.query(Resume.status, func.count(Resume.id)).group_by(Resume.status).all())

    credits_used = -(
        db.query(func.coalesce(func.sum(CreditTransaction.amount), 0))
        .filter(CreditTransaction.type == "usage")
        .scalar() or 0
    )
    credits_purchased = (
        db.query(func.coalesce(func.sum(CreditTransaction.amount), 0))
        .filter(CreditTransaction.type == "purchase", CreditTransaction.amount > 0)
        .scalar() or 0
    )

    recent_users = db.query(Profile).order_by(Profile.created_at.desc(), Profile.id.desc()).limit(recent_limit).all()
    recent_resumes = db.query(Resume).order_by(Resume.created_at.desc(), Resume.id.desc()).limit(recent_limit).all()

    return {
        "total_users": total_users,
        "active_users": total_users - blocked_users,
        "blocked_users": blocked_users,
        "total_resumes": sum(status_counts.values()),
        "completed_resumes": status_counts.get("completed", 0),
        "failed_resumes": status_counts.get("failed", 0),
        "processing_resumes": status_counts.get("processing", 0) + status_counts.get("pending", 0),
        "total_credits_used": int(credits_used),
        "estimated_revenue": round(int(credits_purchased) * REVENUE_PER_PURCHASED_CREDIT, 2),
        "recent_users": [profile_summary(p) for p in recent_users],
        "recent_resumes": [resume_summary(r) for r in recent_resumes],
    }


def resume_summary(resume: Resume) -> Dict[str, Any]:
    return {
        "id": resume.id,
        "user_id": resume.user_id,
        "filename": resume.filename,
        "status": resume.status,
        "confidence_score": resume.confidence_score,
        "created_at": resume.created_at,
    }


def list_transactions(
    db: Session,
    transaction_type: Optional[str] = None,
    user_id: Optional[int] = None,
    page: int = 1,
    limit: int = 50,
) -> Dict[str, Any]:
    page = max(page, 1)
    limit = min(max(limit, 1), 200)
    query = db.query(CreditTransaction, Profile.email).join(Profile, Profile.id == CreditTransaction.user_id)
    if transaction_type:
        query = query.filter(CreditTransaction.type == transaction_type)
    if user_id:
        query = query.filter(CreditTransaction.user_id == user_id)

    total = query.count()
    rows = (
        query.order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "transactions": [
            {
                "id": tx.id,
                "user_id": tx.user_id,
                "user_email": email,
                "amount": tx.amount,
                "type": tx.type,
                "description": tx.description,
                "resume_id": tx.resume_id,
                "created_at": tx.created_at,
            }
            for tx, email in rows
        ],
        "pagination": {"page": page, "limit": limit, "total": total},
    }


def list_all_resumes(db: Session, status: Optional[str] = None, page: int = 1, limit: int = 50) -> Dict[str, Any]:
    page = max(page, 1)
    limit = min(max(limit, 1), 200)
    if status and status not in RESUME_STATUSES:
        raise InvalidStatusError(f"Unknown resume status: {status}")
    query = db.query(Resume)
    if status:
        query = query.filter(Resume.status == status)
    total = query.count()
    resumes = (
        query.order_by(Resume.created_at.desc(), Resume.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "resumes": [resume_summary(r) for r in resumes],
        "pagination": {"page": page, "limit": limit, "total": total},
    }
