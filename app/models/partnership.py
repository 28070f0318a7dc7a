from sqlalchemy import Column, String, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from app.core.database import Base


class PartnershipStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class Partnership(Base):
    __tablename__ = "partnerships"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    affiliate_id = Column(String, ForeignKey("affiliates.id"), nullable=False, index=True)
    company_id = Column(String, ForeignKey("companies.id"), nullable=False, index=True)
    product_id = Column(String, ForeignKey("products.id"), nullable=True)

    affiliate_code = Column(String(64), unique=True, nullable=False, index=True)
    status = Column(SQLEnum(PartnershipStatus), nullable=False, default=PartnershipStatus.PENDING)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    affiliate = relationship("Affiliate", back_populates="partnerships")
    company = relationship("Company", back_populates="partnerships")
    leads = relationship("Lead", back_populates="partnership")
