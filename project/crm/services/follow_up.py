# crm/services/follow_up.py

"""
Follow-up задачи по лиду (звонок, встреча, email, whatsapp) и журнал лида.
Каждое создание/изменение follow-up пишет запись в activities.
"""

from fastapi import Request, status
from sqlalchemy.future import select

from crm.middleware.auth import CurrentUser
from crm.models.activity import Activity
from crm.models.follow_up import FollowUp, FollowUpStatus
from crm.schemas.follow_up import FollowUpCreate, FollowUpUpdate
from crm.services.activity import record_activity, list_activities
from crm.services.lead import get_lead_for_user
from crm.utils.database import utcnow
from crm.utils.response import ApiError


def _ensure_future(scheduled_at):
    if scheduled_at <= utcnow():
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "VALIDATION_ERROR",
            "Follow-up must be scheduled in the future",
            [{"loc": ["body", "scheduledAt"], "msg": "must be in the future", "type": "value_error"}],
        )


# ────────────── CREATE ──────────────
async def create_follow_up_service(lead_id: str, payload: FollowUpCreate, current_user: CurrentUser, request: Request) -> FollowUp:
    db = request.state.db
    log = request.app.state.log

    lead = await get_lead_for_user(lead_id, current_user, request)
    _ensure_future(payload.scheduled_at)

    follow_up = FollowUp(
        lead_id=lead.id,
        user_id=current_user.id,
        scheduled_at=payload.scheduled_at,
        status=FollowUpStatus.PENDING,
        type=payload.type,
        notes=payload.notes,
        reminder=payload.reminder,
    )
    db.add(follow_up)
    await db.flush()

    record_activity(
        db,
        entity_type="follow_up",
        entity_id=follow_up.id,
        user_id=current_user.id,
        activity_type="follow_up_created",
        description=f"{payload.type} scheduled for {payload.scheduled_at.isoformat()}",
        meta={"leadId": lead.id, "newStatus": FollowUpStatus.PENDING, "notes": payload.notes},
    )
    await db.commit()
    await db.refresh(follow_up)

    await log.log_info("follow_up", "Follow-up создан", {"id": follow_up.id, "lead_id": lead.id})
    return follow_up


# ────────────── READ ──────────────
async def list_follow_ups_service(lead_id: str, current_user: CurrentUser, request: Request) -> list[FollowUp]:
    """Ближайшие первыми."""
    db = request.state.db

    lead = await get_lead_for_user(lead_id, current_user, request)
    result = await db.execute(
        select(FollowUp).where(FollowUp.lead_id == lead.id).order_by(FollowUp.scheduled_at.asc())
    )
    return list(result.scalars().all())


# ────────────── UPDATE ──────────────
async def update_follow_up_service(follow_up_id: str, payload: FollowUpUpdate, current_user: CurrentUser, request: Request) -> FollowUp:
    """
    Частичное обновление. status=completed проставляет completed_at,
    возврат из completed его сбрасывает.
    """
    db = request.state.db
    log = request.app.state.log

    result = await db.execute(select(FollowUp).where(FollowUp.id == follow_up_id))
    follow_up = result.scalar_one_or_none()
    if follow_up is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "NOT_FOUND", "Follow-up not found")

    # доступ к follow-up = доступ к его лиду
    await get_lead_for_user(follow_up.lead_id, current_user, request)

    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None or k == "notes"}
    if "scheduled_at" in changes:
        _ensure_future(changes["scheduled_at"])

    old_status = follow_up.status
    for key, value in changes.items():
        setattr(follow_up, key, value)

    if follow_up.status != old_status:
        follow_up.completed_at = utcnow() if follow_up.status == FollowUpStatus.COMPLETED else None

    record_activity(
        db,
        entity_type="follow_up",
        entity_id=follow_up.id,
        user_id=current_user.id,
        activity_type="follow_up_updated",
        description=(
            f"Status changed from {old_status} to {follow_up.status}"
            if follow_up.status != old_status else "Follow-up updated"
        ),
        meta={
            "leadId": follow_up.lead_id,
            "oldStatus": old_status,
            "newStatus": follow_up.status,
            "fields": sorted(changes),
            "notes": follow_up.notes,
        },
    )
    await db.commit()
    await db.refresh(follow_up)

    await log.log_info("follow_up", "Follow-up обновлён", {"id": follow_up.id, "fields": sorted(changes)})
    return follow_up


# ────────────── ACTIVITIES ──────────────
async def list_lead_activities_service(lead_id: str, current_user: CurrentUser, request: Request) -> list[Activity]:
    """Журнал лида и всех его follow-up, новые первыми."""
    db = request.state.db

    lead = await get_lead_for_user(lead_id, current_user, request)
    result = await db.execute(select(FollowUp.id).where(FollowUp.lead_id == lead.id))
    entity_ids = [lead.id, *result.scalars().all()]
    return await list_activities(db, entity_ids)
