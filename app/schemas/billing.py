"""
Pydantic schemas for billing endpoints.
"""
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class CreateCheckoutSessionRequest(BaseModel):
    """Request schema for creating checkout session."""
    type: Literal["credits", "subscription"] = Field(..., description="'credits' or 'subscription'")
    package_id: Optional[str] = Field(None, description="Credit package id, or plan_<id> for a one-time billing plan")
    plan_id: Optional[str] = Field(None, description="Subscription plan id, or plan_<id> for a recurring billing plan")

    @model_validator(mode="after")
    def require_offer_id(self):
        if self.type == "credits" and not self.package_id:
            raise ValueError("package_id is required for credits")
        if self.type == "subscription" and not self.plan_id:
            raise ValueError("plan_id is required for subscription")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "type": "credits",
                "package_id": "credits_100",
            }
        }


class CreateCheckoutSessionResponse(BaseModel):
    """Response schema for checkout session creation."""
    url: str = Field(..., description="Stripe checkout session URL")
    session_id: str = Field(..., description="Stripe checkout session ID")


class SubscriptionPlanResponse(BaseModel):
    id: str
    name: str
    description: str
    price: float
    interval: str
    credits: int
    features: List[str] = Field(default_factory=list)


class CreditPackageResponse(BaseModel):
    id: str
    name: str
    credits: int
    price: float
    savings: Optional[str] = None


class CatalogResponse(BaseModel):
    subscription_plans: List[SubscriptionPlanResponse]
    credit_packages: List[CreditPackageResponse]


class CreditTransactionResponse(BaseModel):
    id: int
    amount: int
    type: str
    description: Optional[str] = None
    resume_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreditsResponse(BaseModel):
    credits: int
    unlimited: bool
    subscription_status: str
    transactions: List[CreditTransactionResponse]
