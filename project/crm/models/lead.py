# crm/models/lead.py

import uuid
from sqlalchemy import Column, String, Text, DateTime, Numeric, ForeignKey, JSON
from crm.utils.database import Base, utcnow


class LeadStatus:
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    SITE_VISIT = "site_visit"
    NEGOTIATION = "negotiation"
    CONVERTED = "converted"
    LOST = "lost"


class LeadSource:
    WEBSITE = "website"
    REFERRAL = "referral"


class Lead(Base):
    __tablename__ = "leads"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=False)
    status = Column(String(50), nullable=False, default=LeadStatus.NEW)
    source = Column(String(100), nullable=True)
    assigned_agent_id = Column(String(36), ForeignKey("agents.id"), nullable=True, index=True)
    budget = Column(Numeric(15, 2), nullable=True)
    notes = Column(Text, nullable=True)
    # имя "metadata" занято в declarative Base
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
