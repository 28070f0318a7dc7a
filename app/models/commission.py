from sqlalchemy import Column, String, DateTime, Numeric, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from app.core.database import Base


class CommissionStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"


class CompanyCommissionStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"


class Commission(Base):
    __tablename__ = "commissions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    affiliate_id = Column(String, ForeignKey("affiliates.id"), nullable=False, index=True)
    company_id = Column(String, ForeignKey("companies.id"), nullable=False)
    purchase_id = Column(String, ForeignKey("purchases.id"), unique=True, nullable=True)

    commission_amount = Column(Numeric(12, 2), nullable=False)
    # Affiliate's gross share; the processor fee comes off at payout time
    affiliate_payout_amount = Column(Numeric(12, 2), nullable=False)
    platform_fee_amount = Column(Numeric(12, 2), nullable=False, default=0)

    status = Column(SQLEnum(CommissionStatus), nullable=False, default=CommissionStatus.PENDING, index=True)

    # Approval
    approved_at = Column(DateTime, nullable=True)

    # Payment. payout_id is the claim held by a processing or completed payout.
    payout_id = Column(String, ForeignKey("payouts.id"), nullable=True, index=True)
    paid_at = Column(DateTime, nullable=True)

    # Collection from the company: commission + platform fee
    company_payment_status = Column(
        SQLEnum(CompanyCommissionStatus), nullable=False, default=CompanyCommissionStatus.PENDING, index=True
    )
    company_payment_id = Column(String, ForeignKey("company_commission_payments.id"), nullable=True, index=True)
    company_paid_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    affiliate = relationship("Affiliate", back_populates="commissions")
    payout = relationship("Payout", back_populates="commissions")
    company_payment = relationship("CompanyCommissionPayment", back_populates="commissions")
