# crm/models/user.py

import uuid
from sqlalchemy import Column, String, Text, DateTime, Boolean
from crm.utils.database import Base, utcnow


class UserRole:
    ADMIN = "admin"
    BUILDER = "builder"
    CHANNEL_PARTNER = "channel_partner"
    CUSTOMER = "customer"

    ALL = (ADMIN, BUILDER, CHANNEL_PARTNER, CUSTOMER)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(Text, nullable=False)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(String(50), nullable=False, default=UserRole.CHANNEL_PARTNER)
    referral_code = Column(String(20), unique=True, nullable=True)   # только у channel_partner

    is_active = Column(Boolean, nullable=False, default=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    verification_token = Column(String(64), nullable=True, index=True)
    verification_token_expires = Column(DateTime(timezone=True), nullable=True)
    reset_token = Column(String(64), nullable=True, index=True)
    reset_token_expires = Column(DateTime(timezone=True), nullable=True)

    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
