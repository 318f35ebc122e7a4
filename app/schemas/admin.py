"""
Pydantic schemas for the admin back office.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class AdminCheckResponse(BaseModel):
    is_admin: bool
    role: Optional[str] = None


class UserUpdateRequest(BaseModel):
    full_name: Optional[str] = Field(default=None, max_length=200)
    subscription_status: Optional[str] = None
    is_blocked: Optional[bool] = None
    credits: Optional[int] = Field(default=None, ge=-1, description="New balance; -1 for unlimited")


class AssignPlanRequest(BaseModel):
    plan_id: int
    credits: Optional[int] = Field(default=None, ge=-1, description="Overrides the plan's credit grant")


class SettingsUpdateRequest(BaseModel):
    # Validated by hand so a non-list gets a 400 rather than a 422
    settings: Any


class SettingResponse(BaseModel):
    id: int
    category: str
    key: str
    value: Any = None
    description: Optional[str] = None
    is_public: bool
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ReconcileResponse(BaseModel):
    stuck_resumes_failed: int
    drift: list
