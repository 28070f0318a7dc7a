from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import NotFoundError
from app.core.fee_schedule import PAYOUT_METHODS
from app.core.security import verify_cron_secret
from app.models.payout import Payout, PayoutStatus
from app.schemas.payout import AuditLogResponse, BatchRunResponse, PayoutMethodInfo, PayoutResponse
from app.services.audit_service import AuditService
from app.services.payout_service import PayoutService
from app.services.stripe_gateway import TransferGateway, get_gateway

router = APIRouter()


@router.get("/", response_model=List[PayoutResponse])
async def list_payouts(
    affiliate_id: Optional[str] = None,
    status: Optional[PayoutStatus] = None,
    skip: int = 0,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    db: Session = Depends(get_db)
):
    """List payouts"""
    return PayoutService.list_payouts(
        db=db,
        affiliate_id=affiliate_id,
        status=status,
        skip=skip,
        limit=min(limit, settings.MAX_PAGE_SIZE)
    )


@router.get("/methods", response_model=List[PayoutMethodInfo])
async def list_payout_methods():
    """Payout methods with their processor fees"""
    return [
        PayoutMethodInfo(
            method=config.method,
            label=config.label,
            fee_rate=config.fee_rate,
            estimated_arrival=config.estimated_arrival,
            min_amount=config.min_amount,
            max_amount=config.max_amount
        )
        for config in PAYOUT_METHODS.values()
    ]


@router.post("/process-scheduled", response_model=BatchRunResponse, dependencies=[Depends(verify_cron_secret)])
def process_scheduled_payouts(
    db: Session = Depends(get_db),
    gateway: TransferGateway = Depends(get_gateway)
):
    """Run the scheduled payout batch (called by cron)"""
    result = PayoutService.process_scheduled_payouts(db, gateway)
    return {"success": True, "results": result.as_dict()}


@router.get("/{payout_id}/audit", response_model=List[AuditLogResponse])
async def get_payout_audit(
    payout_id: str,
    db: Session = Depends(get_db)
):
    """Audit trail of a payout"""
    if not db.get(Payout, payout_id):
        raise NotFoundError("Payout not found", details={"payout_id": payout_id})
    return AuditService.history(db, "payout", payout_id)
