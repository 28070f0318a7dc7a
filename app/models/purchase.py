from sqlalchemy import Column, String, Boolean, DateTime, Integer, Numeric, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from app.core.database import Base


class PurchaseStatus(str, enum.Enum):
    COMPLETED = "completed"
    REFUNDED = "refunded"


class PurchasePaymentMethod(str, enum.Enum):
    PLATFORM = "platform"
    EXTERNAL = "external"


class Purchase(Base):
    """Ledger entry for a completed sale. Never updated after insert."""
    __tablename__ = "purchases"
    __table_args__ = (
        UniqueConstraint("company_id", "external_purchase_id", name="uq_purchases_company_external_id"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    product_id = Column(String, ForeignKey("products.id"), nullable=False, index=True)
    affiliate_id = Column(String, ForeignKey("affiliates.id"), nullable=False, index=True)
    company_id = Column(String, ForeignKey("companies.id"), nullable=False, index=True)
    partnership_id = Column(String, ForeignKey("partnerships.id"), nullable=False)

    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)

    # What the customer actually paid, after discount
    purchase_amount = Column(Numeric(12, 2), nullable=False)
    commission_amount = Column(Numeric(12, 2), nullable=False)
    platform_fee = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    discount_applied = Column(Boolean, nullable=False, default=False)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)

    status = Column(SQLEnum(PurchaseStatus), nullable=False, default=PurchaseStatus.COMPLETED)
    payment_method = Column(SQLEnum(PurchasePaymentMethod), nullable=False)

    external_purchase_id = Column(String(255), nullable=True)
    product_url = Column(String(500), nullable=True)

    purchased_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    product = relationship("Product", back_populates="purchases")
