from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import date, datetime
from decimal import Decimal

from app.core.fee_schedule import PayoutFrequency, PayoutMethod
from app.models.payout import PayoutStatus


class PayoutResponse(BaseModel):
    id: str
    affiliate_id: str
    total_amount: Decimal
    platform_fee_total: Decimal
    stripe_fee_amount: Decimal
    net_amount: Decimal
    commission_ids: List[str]
    status: PayoutStatus
    payout_method: str
    stripe_transfer_id: Optional[str] = None
    failure_reason: Optional[str] = None
    scheduled_date: date
    processed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class BatchResults(BaseModel):
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = []


class BatchRunResponse(BaseModel):
    success: bool = True
    results: BatchResults


class PayoutMethodInfo(BaseModel):
    method: PayoutMethod
    label: str
    fee_rate: Decimal
    estimated_arrival: str
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None


class PayoutPreferenceUpdate(BaseModel):
    auto_payout_enabled: bool = False
    preferred_payout_method: PayoutMethod = PayoutMethod.ACH_STANDARD
    payout_frequency: PayoutFrequency = PayoutFrequency.MONTHLY
    payout_frequency_days: Optional[int] = None
    minimum_payout_threshold: Decimal = Field(Decimal("50"), ge=0)


class PayoutPreferenceResponse(BaseModel):
    affiliate_id: str
    auto_payout_enabled: bool
    preferred_payout_method: str
    payout_frequency: str
    payout_frequency_days: Optional[int] = None
    minimum_payout_threshold: Decimal
    next_scheduled_payout_date: Optional[date] = None

    class Config:
        from_attributes = True


class AuditLogResponse(BaseModel):
    id: str
    event_type: str
    entity_type: str
    entity_id: str
    event_data: Optional[Dict[str, Any]] = None
    stripe_event_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
