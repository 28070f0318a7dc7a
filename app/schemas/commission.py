from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from app.models.commission import CommissionStatus, CompanyCommissionStatus
from app.models.company_payment import CompanyPaymentStatus


class CommissionBase(BaseModel):
    affiliate_id: str
    company_id: str
    commission_amount: Decimal
    affiliate_payout_amount: Decimal
    platform_fee_amount: Decimal


class CommissionUpdate(BaseModel):
    status: CommissionStatus


class CommissionResponse(CommissionBase):
    id: str
    purchase_id: Optional[str] = None
    status: CommissionStatus
    payout_id: Optional[str] = None
    company_payment_status: Optional[CompanyCommissionStatus] = None
    approved_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CommissionSimulation(BaseModel):
    product_id: str
    purchase_amount: Decimal = Field(..., ge=0)
    quantity: int = 1


class CommissionSimulationResult(BaseModel):
    product_id: str
    product_name: str
    purchase_amount: Decimal
    quantity: int
    commission_type: str
    commission_rate: Decimal
    platform_fee_rate: Decimal
    commission_amount: Decimal
    platform_fee: Decimal
    affiliate_payout_amount: Decimal


class CommissionDashboard(BaseModel):
    to_receive: Decimal
    paid: Decimal
    pending: Decimal
    recent_commissions: List[CommissionResponse]


class CompanyPaymentCreate(BaseModel):
    company_id: str
    commission_ids: List[str]
    payment_method_id: str = Field(..., min_length=1)


class CompanyPaymentResponse(BaseModel):
    id: str
    company_id: str
    total_amount: Decimal
    commission_ids: List[str]
    number_of_commissions: int
    payment_status: CompanyPaymentStatus
    stripe_payment_intent_id: Optional[str] = None
    failure_reason: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
