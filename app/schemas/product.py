from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from app.models.product import CommissionType, DiscountType


class ProductCreate(BaseModel):
    company_id: str
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    commission_rate: Decimal = Field(..., ge=0)
    commission_type: CommissionType = CommissionType.PERCENTAGE
    affiliate_discount_enabled: bool = False
    affiliate_discount_type: Optional[DiscountType] = None
    affiliate_discount_value: Optional[Decimal] = Field(None, ge=0)
    inventory_tracking: bool = False
    inventory_quantity: int = Field(0, ge=0)
    external_checkout_url: Optional[str] = None
    product_url: Optional[str] = None

    @model_validator(mode="after")
    def check_rates(self):
        if self.commission_type == CommissionType.PERCENTAGE and self.commission_rate > 100:
            raise ValueError("percentage commission_rate must be between 0 and 100")
        if self.affiliate_discount_enabled:
            if self.affiliate_discount_type is None or self.affiliate_discount_value is None:
                raise ValueError("affiliate discount requires a type and a value")
            if self.affiliate_discount_type == DiscountType.PERCENTAGE and self.affiliate_discount_value >= 100:
                raise ValueError("percentage affiliate_discount_value must be below 100")
        return self


class ProductResponse(BaseModel):
    id: str
    company_id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    currency: str
    commission_rate: Decimal
    commission_type: str
    affiliate_discount_enabled: bool
    affiliate_discount_type: Optional[str] = None
    affiliate_discount_value: Optional[Decimal] = None
    inventory_tracking: bool
    inventory_quantity: int
    external_checkout_url: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
