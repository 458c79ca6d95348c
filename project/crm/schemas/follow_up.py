# crm/schemas/follow_up.py

from datetime import datetime, timezone
from typing import Any, Literal, Optional
from pydantic import Field, field_validator

from crm.schemas.base import CamelModel

FollowUpType = Literal["call", "meeting", "email", "whatsapp"]
FollowUpStatusValue = Literal["pending", "completed", "cancelled"]


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    # время без зоны считаем UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class FollowUpCreate(CamelModel):
    scheduled_at: datetime
    type: FollowUpType
    notes: Optional[str] = None
    reminder: bool = True

    @field_validator("scheduled_at")
    @classmethod
    def scheduled_at_utc(cls, value):
        return _to_utc(value)


class FollowUpUpdate(CamelModel):
    scheduled_at: Optional[datetime] = None
    type: Optional[FollowUpType] = None
    notes: Optional[str] = None
    reminder: Optional[bool] = None
    status: Optional[FollowUpStatusValue] = None

    @field_validator("scheduled_at")
    @classmethod
    def scheduled_at_utc(cls, value):
        return _to_utc(value)


class FollowUpResponse(CamelModel):
    id: str
    lead_id: str
    user_id: str
    scheduled_at: datetime
    completed_at: Optional[datetime] = None
    status: str
    type: str
    notes: Optional[str] = None
    reminder: bool
    created_at: datetime
    updated_at: datetime


class ActivityResponse(CamelModel):
    id: str
    entity_type: str
    entity_id: str
    user_id: str
    activity_type: str
    description: Optional[str] = None
    meta: Optional[dict[str, Any]] = Field(None, validation_alias="meta", serialization_alias="metadata")
    created_at: datetime
