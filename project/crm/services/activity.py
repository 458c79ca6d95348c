# crm/services/activity.py

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from crm.models.activity import Activity


def record_activity(
    db: AsyncSession,
    entity_type: str,
    entity_id: str,
    user_id: str,
    activity_type: str,
    description: Optional[str] = None,
    meta: Optional[dict] = None,
) -> Activity:
    """Добавляет запись журнала в текущую транзакцию (commit делает вызывающий)."""
    activity = Activity(
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        activity_type=activity_type,
        description=description,
        meta=meta,
    )
    db.add(activity)
    return activity


async def list_activities(db: AsyncSession, entity_ids: list[str]) -> list[Activity]:
    """Записи по набору сущностей, новые первыми."""
    result = await db.execute(
        select(Activity)
        .where(Activity.entity_id.in_(entity_ids))
        .order_by(Activity.created_at.desc())
    )
    return list(result.scalars().all())
