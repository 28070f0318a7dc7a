from sqlalchemy import Column, String, DateTime, Integer, Numeric, ForeignKey, JSON, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from app.core.database import Base


class CompanyPaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CompanyCommissionPayment(Base):
    """A company's charge covering a set of approved commissions plus platform fees."""
    __tablename__ = "company_commission_payments"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String, ForeignKey("companies.id"), nullable=False, index=True)

    # Sum of commission_amount + platform_fee_amount over commission_ids
    total_amount = Column(Numeric(12, 2), nullable=False)
    commission_ids = Column(JSON, nullable=False)
    number_of_commissions = Column(Integer, nullable=False)

    payment_status = Column(SQLEnum(CompanyPaymentStatus), nullable=False, default=CompanyPaymentStatus.PENDING, index=True)
    payment_method_id = Column(String(255), nullable=True)
    stripe_payment_intent_id = Column(String(255), unique=True, nullable=True, index=True)
    failure_reason = Column(Text, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    company = relationship("Company", back_populates="commission_payments")
    commissions = relationship("Commission", back_populates="company_payment")
