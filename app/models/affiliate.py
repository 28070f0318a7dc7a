from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from app.core.database import Base


class AccountStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    RESTRICTED = "restricted"


class Affiliate(Base):
    __tablename__ = "affiliates"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)

    # Payee account at the payment processor
    stripe_connect_account_id = Column(String(255), unique=True, nullable=True, index=True)
    stripe_account_status = Column(SQLEnum(AccountStatus), nullable=False, default=AccountStatus.PENDING)
    stripe_onboarding_completed = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    partnerships = relationship("Partnership", back_populates="affiliate")
    commissions = relationship("Commission", back_populates="affiliate")
    payout_preference = relationship("PayoutPreference", back_populates="affiliate", uselist=False)
    payouts = relationship("Payout", back_populates="affiliate")
