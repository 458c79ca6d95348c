# crm/models/activity.py

import uuid
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, JSON
from crm.utils.database import Base, utcnow


class Activity(Base):
    """Журнал изменений по сущности (лид, follow-up)."""
    __tablename__ = "activities"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    activity_type = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
