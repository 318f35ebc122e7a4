"""
Database models module.

Imports every model so it is registered with Base.metadata before table
creation and Alembic autogeneration.
"""
from app.db.models.user import Profile
from app.db.models.admin_user import AdminUser
from app.db.models.credit_transaction import CreditTransaction
from app.db.models.billing_plan import BillingPlan
from app.db.models.resume import Resume
from app.db.models.parsed_data import ParsedData
from app.db.models.setting import Setting

__all__ = [
    "Profile",
    "AdminUser",
    "CreditTransaction",
    "BillingPlan",
    "Resume",
    "ParsedData",
    "Setting",
]
