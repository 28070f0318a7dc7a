from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from app.core.database import Base


class LeadType(str, enum.Enum):
    CLICK = "click"
    CONVERSION = "conversion"


class Lead(Base):
    __tablename__ = "leads"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    partnership_id = Column(String, ForeignKey("partnerships.id"), nullable=False, index=True)
    lead_type = Column(SQLEnum(LeadType), nullable=False)

    # One conversion lead per purchase; makes re-recording a no-op
    purchase_id = Column(String, ForeignKey("purchases.id"), unique=True, nullable=True)

    # Validated through app.schemas.lead.LeadData before it is stored
    lead_data = Column(JSON, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    partnership = relationship("Partnership", back_populates="leads")
