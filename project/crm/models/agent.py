# crm/models/agent.py

import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON
from crm.utils.database import Base, utcnow


class Agent(Base):
    """Запись партнёра: к ней привязываются лиды. Один к одному с пользователем channel_partner."""
    __tablename__ = "agents"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    status = Column(String(50), nullable=False, default="active")
    performance_metrics = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
