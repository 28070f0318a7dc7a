from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

from app.models.purchase import PurchasePaymentMethod, PurchaseStatus


class CustomerInfo(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)


class PurchaseCreate(BaseModel):
    product_id: str
    partnership_id: str
    quantity: int = 1
    customer: CustomerInfo


class ExternalPurchasePayload(BaseModel):
    affiliate_code: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)
    customer_email: EmailStr
    purchase_amount: Decimal = Field(..., gt=0)
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    quantity: Optional[int] = None
    external_purchase_id: Optional[str] = None
    purchased_at: Optional[datetime] = None


class ExternalPurchaseResponse(BaseModel):
    success: bool = True
    purchase_id: str
    commission_amount: Decimal
    message: str = "Purchase tracked successfully"


class PurchaseResponse(BaseModel):
    id: str
    product_id: str
    affiliate_id: str
    company_id: str
    partnership_id: str
    customer_email: str
    purchase_amount: Decimal
    commission_amount: Decimal
    platform_fee: Decimal
    quantity: int
    discount_applied: bool
    discount_amount: Decimal
    status: PurchaseStatus
    payment_method: PurchasePaymentMethod
    external_purchase_id: Optional[str] = None
    purchased_at: datetime
    created_at: datetime

    class Config:
        from_attributes = True
