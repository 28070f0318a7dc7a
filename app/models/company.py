from sqlalchemy import Column, String, DateTime, Numeric
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from app.core.database import Base


class Company(Base):
    __tablename__ = "companies"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)

    # Share of each commission kept by the platform, in percent. NULL means default.
    platform_fee_rate = Column(Numeric(5, 2), nullable=True)

    # Customer the platform charges for commissions owed
    stripe_customer_id = Column(String(255), unique=True, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    products = relationship("Product", back_populates="company")
    partnerships = relationship("Partnership", back_populates="company")
    commission_payments = relationship("CompanyCommissionPayment", back_populates="company")
