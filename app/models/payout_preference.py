from sqlalchemy import Column, String, Boolean, Date, DateTime, Integer, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from app.core.database import Base
from app.core.fee_schedule import PayoutFrequency, PayoutMethod


class PayoutPreference(Base):
    __tablename__ = "payout_preferences"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    affiliate_id = Column(String, ForeignKey("affiliates.id"), unique=True, nullable=False)

    auto_payout_enabled = Column(Boolean, nullable=False, default=False)
    preferred_payout_method = Column(String(20), nullable=False, default=PayoutMethod.ACH_STANDARD.value)
    payout_frequency = Column(String(20), nullable=False, default=PayoutFrequency.MONTHLY.value)
    payout_frequency_days = Column(Integer, nullable=True)
    minimum_payout_threshold = Column(Numeric(12, 2), nullable=False, default=50)
    next_scheduled_payout_date = Column(Date, nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    affiliate = relationship("Affiliate", back_populates="payout_preference")
