from sqlalchemy import Column, String, Date, DateTime, Numeric, ForeignKey, Text, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from app.core.database import Base


class PayoutStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Payout(Base):
    __tablename__ = "payouts"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    affiliate_id = Column(String, ForeignKey("affiliates.id"), nullable=False, index=True)

    # Sum of affiliate_payout_amount over commission_ids
    total_amount = Column(Numeric(12, 2), nullable=False)
    platform_fee_total = Column(Numeric(12, 2), nullable=False, default=0)
    stripe_fee_amount = Column(Numeric(12, 2), nullable=False, default=0)
    net_amount = Column(Numeric(12, 2), nullable=False)

    commission_ids = Column(JSON, nullable=False)

    status = Column(SQLEnum(PayoutStatus), nullable=False, default=PayoutStatus.PROCESSING, index=True)
    payout_method = Column(String(20), nullable=False)

    stripe_transfer_id = Column(String(255), unique=True, nullable=True, index=True)
    failure_reason = Column(Text, nullable=True)
    processing_error_code = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    scheduled_date = Column(Date, nullable=False)
    processed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    affiliate = relationship("Affiliate", back_populates="payouts")
    commissions = relationship("Commission", back_populates="payout")
