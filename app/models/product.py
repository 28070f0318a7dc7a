from sqlalchemy import Column, String, Boolean, DateTime, Integer, Numeric, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from app.core.database import Base


class CommissionType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FLAT = "flat"


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FLAT = "flat"


class Product(Base):
    __tablename__ = "products"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String, ForeignKey("companies.id"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    # Stored as plain strings; unknown values are rejected when calculating
    commission_rate = Column(Numeric(10, 2), nullable=False, default=0)
    commission_type = Column(String(20), nullable=False, default=CommissionType.PERCENTAGE.value)

    affiliate_discount_enabled = Column(Boolean, default=False)
    affiliate_discount_type = Column(String(20), nullable=True)
    affiliate_discount_value = Column(Numeric(10, 2), nullable=True)

    inventory_tracking = Column(Boolean, default=False)
    inventory_quantity = Column(Integer, nullable=False, default=0)

    # When set, sales happen elsewhere and arrive through the external purchase webhook
    external_checkout_url = Column(String(500), nullable=True)
    product_url = Column(String(500), nullable=True)

    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    company = relationship("Company", back_populates="products")
    purchases = relationship("Purchase", back_populates="product")
