import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.access_guard import require_active_user
from app.core.catalog import CREDIT_PACKAGES, SUBSCRIPTION_PLANS, is_unlimited
from app.db.session import get_db
from app.db.models.user import Profile
from app.schemas.billing import (
    CatalogResponse,
    CreateCheckoutSessionRequest,
    CreateCheckoutSessionResponse,
    CreditPackageResponse,
    CreditTransactionResponse,
    CreditsResponse,
    SubscriptionPlanResponse,
)
from app.schemas.billing_plan import BillingPlanResponse
from app.services import billing_service, stripe_service
from app.services.billing_plan_service import list_plans
from app.services.credit_ledger import list_transactions

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Billing"])


@router.get("/api/billing/catalog", response_model=CatalogResponse)
def billing_catalog():
    """Built-in subscription plans and credit packages."""
    return CatalogResponse(
        subscription_plans=[
            SubscriptionPlanResponse(
                id=p.id, name=p.name, description=p.description, price=p.price,
                interval=p.interval, credits=p.credits, features=list(p.features),
            )
            for p in SUBSCRIPTION_PLANS.values()
        ],
        credit_packages=[
            CreditPackageResponse(id=c.id, name=c.name, credits=c.credits, price=c.price, savings=c.savings)
            for c in CREDIT_PACKAGES.values()
        ],
    )


@router.get("/api/billing/plans", response_model=List[BillingPlanResponse])
def active_billing_plans(db: Session = Depends(get_db)):
    return list_plans(db, active_only=True)


@router.get("/api/credits", response_model=CreditsResponse)
def my_credits(
    profile: Profile = Depends(require_active_user),
    db: Session = Depends(get_db),
):
    return CreditsResponse(
        credits=profile.credits,
        unlimited=is_unlimited(profile.credits),
        subscription_status=profile.subscription_status,
        transactions=[CreditTransactionResponse.model_validate(t) for t in list_transactions(db, profile.id)],
    )


@router.post("/api/stripe/create-checkout", response_model=CreateCheckoutSessionResponse)
def create_checkout(
    payload: CreateCheckoutSessionRequest,
    profile: Profile = Depends(require_active_user),
    db: Session = Depends(get_db),
):
    offer_id = payload.package_id if payload.type == "credits" else payload.plan_id
    try:
        session = billing_service.create_checkout(db, profile, payload.type, offer_id)
    except (billing_service.OfferNotFoundError, billing_service.OfferNotPurchasableError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except billing_service.PriceNotConfiguredError as e:
        logger.error(f"Checkout misconfiguration: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except stripe_service.ExternalServiceError:
        raise HTTPException(status_code=502, detail="Failed to create checkout session")

    return CreateCheckoutSessionResponse(**session)
