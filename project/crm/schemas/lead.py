# crm/schemas/lead.py

from datetime import datetime
from typing import Any, Literal, Optional
from pydantic import EmailStr, Field

from crm.schemas.base import CamelModel

LeadStatusValue = Literal["new", "contacted", "qualified", "site_visit", "negotiation", "converted", "lost"]


# ────────────── Публичная заявка ──────────────
class LeadPublicCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=255)
    phone: str = Field(..., min_length=10, max_length=20)
    email: Optional[EmailStr] = None
    referral_code: Optional[str] = Field(None, max_length=20)
    budget: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


# ────────────── Обновление ──────────────
class LeadUpdate(CamelModel):
    """Частичное обновление: статус не ограничен порядком переходов."""
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, min_length=10, max_length=20)
    status: Optional[LeadStatusValue] = None
    budget: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


# ────────────── Ответ ──────────────
class LeadResponse(CamelModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: str
    status: str
    source: Optional[str] = None
    assigned_agent_id: Optional[str] = None
    budget: Optional[float] = None
    notes: Optional[str] = None
    meta: Optional[dict[str, Any]] = Field(None, validation_alias="meta", serialization_alias="metadata")
    created_at: datetime
    updated_at: datetime
