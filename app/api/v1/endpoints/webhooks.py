from fastapi import APIRouter, Body, Depends, Header, Request
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional
import logging

import pydantic
import stripe

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import MissingRequiredField, ValidationError
from app.schemas.purchase import ExternalPurchasePayload, ExternalPurchaseResponse
from app.services.payout_settlement_service import PayoutSettlementService
from app.services.purchase_service import PurchaseService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/external-purchase", response_model=ExternalPurchaseResponse)
async def external_purchase(
    body: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db)
):
    """Track a purchase completed on a company's own checkout"""
    try:
        payload = ExternalPurchasePayload.model_validate(body)
    except pydantic.ValidationError as e:
        raise MissingRequiredField(
            sorted({".".join(str(part) for part in error["loc"]) for error in e.errors()})
        )

    purchase = PurchaseService.record_external_purchase(db, payload)
    return ExternalPurchaseResponse(
        purchase_id=purchase.id,
        commission_amount=purchase.commission_amount
    )


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """Payout settlement, company payment and account status events from Stripe"""
    if not stripe_signature:
        raise ValidationError("Missing stripe-signature header", status_code=400)
    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("STRIPE_WEBHOOK_SECRET not set")
        raise ValidationError("Webhook secret not configured", status_code=500)

    payload = await request.body()
    try:
        event = stripe.Webhook.construct_event(payload, stripe_signature, settings.STRIPE_WEBHOOK_SECRET)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        raise ValidationError("Invalid signature", status_code=400)

    logger.info(f"Received Stripe webhook: {event['type']}")
    handled = PayoutSettlementService.handle_stripe_event(db, event)
    return {"received": True, "handled": handled}
