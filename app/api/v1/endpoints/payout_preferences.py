from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.exceptions import NotFoundError
from app.schemas.payout import PayoutPreferenceResponse, PayoutPreferenceUpdate
from app.services.payout_preference_service import PayoutPreferenceService
from app.services.payout_settlement_service import PayoutSettlementService
from app.services.stripe_gateway import TransferGateway, get_gateway

router = APIRouter()


@router.get("/{affiliate_id}", response_model=PayoutPreferenceResponse)
async def get_payout_preference(
    affiliate_id: str,
    db: Session = Depends(get_db)
):
    """Get an affiliate's payout settings"""
    return PayoutPreferenceService.get(db, affiliate_id)


@router.put("/{affiliate_id}", response_model=PayoutPreferenceResponse)
async def update_payout_preference(
    affiliate_id: str,
    preference: PayoutPreferenceUpdate,
    db: Session = Depends(get_db)
):
    """Create or update an affiliate's payout settings"""
    return PayoutPreferenceService.upsert(db, affiliate_id, preference)


@router.post("/{affiliate_id}/account-status/refresh")
def refresh_account_status(
    affiliate_id: str,
    db: Session = Depends(get_db),
    gateway: TransferGateway = Depends(get_gateway)
):
    """Re-read the affiliate's payee verification status from the processor"""
    affiliate = PayoutSettlementService.refresh_account_status(db, gateway, affiliate_id)
    if not affiliate:
        raise NotFoundError("Affiliate not found", details={"affiliate_id": affiliate_id})
    return {
        "affiliate_id": affiliate.id,
        "stripe_account_status": affiliate.stripe_account_status.value
    }
