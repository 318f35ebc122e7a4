"""
Central authorization for every authenticated route.

Handlers never look up roles or blocked flags themselves; they depend on
``require_active_user`` or ``require_super_admin``, which evaluate a single
typed decision before the handler body runs.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status

from app.core.auth_dependency import get_current_user
from app.db.models.user import Profile
from app.db.models.admin_user import AdminUser

logger = logging.getLogger(__name__)

ROLE_RANK = {"admin": 1, "super_admin": 2}


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    deny_reason: Optional[str] = None
    status_code: int = status.HTTP_200_OK


def get_admin_role(profile: Optional[Profile]) -> Optional[str]:
    """Return the profile's admin role, or None for regular users."""
    if profile is None:
        return None
    admin: Optional[AdminUser] = profile.admin
    return admin.role if admin else None


def evaluate_access(profile: Optional[Profile], required_role: Optional[str] = None) -> AccessDecision:
    """
    Decide whether ``profile`` may proceed.

    Args:
        profile: Authenticated profile, or None if no identity was resolved
        required_role: None for any active user, else "admin" or "super_admin"
    """
    if profile is None:
        return AccessDecision(False, "Authentication required", status.HTTP_401_UNAUTHORIZED)

    if profile.is_blocked:
        return AccessDecision(
            False,
            "Your account has been blocked. Please contact support for assistance.",
            status.HTTP_403_FORBIDDEN,
        )

    if required_role is None:
        return AccessDecision(True)

    role = get_admin_role(profile)
    if role is None or ROLE_RANK.get(role, 0) < ROLE_RANK[required_role]:
        return AccessDecision(
            False,
            "Super admin access required" if required_role == "super_admin" else "Admin access required",
            status.HTTP_403_FORBIDDEN,
        )

    return AccessDecision(True)


def enforce(decision: AccessDecision, profile: Optional[Profile]) -> None:
    """Raise the HTTP error carried by a negative decision."""
    if decision.allowed:
        return
    logger.warning(
        f"Access denied: user_id={getattr(profile, 'id', None)}, "
        f"status={decision.status_code}, reason={decision.deny_reason}"
    )
    raise HTTPException(status_code=decision.status_code, detail=decision.deny_reason)


def require_active_user(profile: Profile = Depends(get_current_user)) -> Profile:
    """Dependency: authenticated and not blocked."""
    enforce(evaluate_access(profile), profile)
    return profile


def require_super_admin(profile: Profile = Depends(get_current_user)) -> Profile:
    """Dependency: authenticated, not blocked, and holding the super_admin role."""
    enforce(evaluate_access(profile, "super_admin"), profile)
    return profile
