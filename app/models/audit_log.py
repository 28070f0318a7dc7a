from sqlalchemy import Column, String, DateTime, JSON
from datetime import datetime
import uuid

from app.core.database import Base


class AuditLog(Base):
    """Append-only trail of payout and purchase events."""
    __tablename__ = "audit_logs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    event_type = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(String, nullable=False, index=True)

    # Snapshot of the amounts involved (JSON)
    event_data = Column(JSON, nullable=True)

    stripe_event_id = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
