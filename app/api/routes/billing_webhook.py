import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services import billing_service, stripe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stripe", tags=["Billing Webhook"])


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    db: Session = Depends(get_db),
):
    """
    Verify and dispatch a Stripe event.

    Unverifiable payloads get a 400 and touch nothing. Handler failures
    return 500 so Stripe redelivers; grants are idempotent on the event id.
    """
    payload = await request.body()

    try:
        event = stripe_service.construct_event(payload, stripe_signature)
    except stripe_service.WebhookVerificationError:
        raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        outcome = billing_service.process_webhook_event(event, db)
    except Exception as e:
        db.rollback()
        logger.error(f"Webhook handler failed: type={event.get('type')}, id={event.get('id')}, error={e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Webhook handler failed")

    logger.info(f"Webhook processed: type={event.get('type')}, id={event.get('id')}, outcome={outcome}")
    return {"received": True}
