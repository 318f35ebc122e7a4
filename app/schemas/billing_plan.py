"""
Pydantic schemas for admin billing plans and the Stripe catalog.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

IntervalType = Literal["one_time", "monthly", "yearly"]


class BillingPlanCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0, description="Price in major currency units")
    currency: str = Field(default="usd", min_length=3, max_length=3)
    interval_type: IntervalType
    credits: Optional[int] = Field(default=None, ge=-1, description="-1 grants unlimited usage")
    features: List[str] = Field(default_factory=list)
    sort_order: int = 0
    is_active: bool = True

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Starter",
                "description": "For occasional job seekers",
                "price": 4.99,
                "currency": "usd",
                "interval_type": "monthly",
                "credits": 25,
                "features": ["25 analyses per month"],
            }
        }


class BillingPlanUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    interval_type: Optional[IntervalType] = None
    credits: Optional[int] = Field(default=None, ge=-1)
    features: Optional[List[str]] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class BillingPlanResponse(BaseModel):
    id: int
    name: str
    description: str
    price: float
    currency: str
    interval_type: str
    credits: Optional[int] = None
    features: List[str] = Field(default_factory=list)
    is_active: bool
    sort_order: int
    stripe_product_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StripePlanCreate(BaseModel):
    """Create a Stripe product + price without a local billing plan."""
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    currency: str = "usd"
    interval_type: IntervalType
    credits: Optional[int] = Field(default=None, ge=-1)


class StripePlanUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    metadata: Optional[Dict[str, str]] = None


class SyncItemResult(BaseModel):
    product_id: Optional[str] = None
    product: str
    action: Literal["created", "updated", "skipped", "error"]
    plan_id: Optional[int] = None
    error: Optional[str] = None


class SyncResponse(BaseModel):
    success: bool
    message: str
    results: List[SyncItemResult]
    errors: List[SyncItemResult] = Field(default_factory=list)


class BulkUploadRowResult(BaseModel):
    row: int
    name: Optional[str] = None
    success: bool
    plan_id: Optional[int] = None
    error: Optional[str] = None


class BulkUploadResponse(BaseModel):
    success: bool
    created: int
    failed: int
    results: List[BulkUploadRowResult]


class StripeProductResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    active: bool = True
    metadata: Dict[str, Any] = Field(default_factory=dict)
    prices: List[Dict[str, Any]] = Field(default_factory=list)
