# crm/services/session_store.py

"""
Хранилище refresh-сессий. Функции только добавляют/удаляют строки,
commit делает вызывающий сервис (регистрация создаёт пользователя,
партнёра и сессию одной транзакцией).

Срок жизни на чтении не проверяется: вызывающий код сверяет expires_at
сам (см. is_session_expired).
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from crm.config import settings
from crm.models.session import Session
from crm.utils.database import utcnow, as_utc


def session_lifetime() -> timedelta:
    return timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)


async def create_session(
    db: AsyncSession,
    user_id: str,
    refresh_token: str,
    expires_at: Optional[datetime] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Session:
    """Новая строка на каждый вход: несколько устройств = несколько сессий."""
    created_at = utcnow()
    session = Session(
        user_id=user_id,
        token=refresh_token,
        expires_at=expires_at or created_at + session_lifetime(),
        ip_address=ip_address,
        user_agent=user_agent,
        created_at=created_at,
        updated_at=created_at,
    )
    db.add(session)
    await db.flush()
    return session


async def find_session_by_token(db: AsyncSession, refresh_token: str) -> Optional[Session]:
    result = await db.execute(select(Session).where(Session.token == refresh_token))
    return result.scalar_one_or_none()


async def delete_session_by_token(db: AsyncSession, refresh_token: str) -> None:
    """Идемпотентно: отсутствие сессии не ошибка."""
    await db.execute(delete(Session).where(Session.token == refresh_token))


async def delete_all_sessions_for_user(db: AsyncSession, user_id: str, keep_token: Optional[str] = None) -> int:
    """
    Удаляет все сессии пользователя, кроме keep_token (текущее устройство).
    Возвращает число удалённых строк.
    """
    query = delete(Session).where(Session.user_id == user_id)
    if keep_token:
        query = query.where(Session.token != keep_token)
    result = await db.execute(query)
    return result.rowcount or 0


def is_session_expired(session: Session, now: Optional[datetime] = None) -> bool:
    return as_utc(session.expires_at) <= (now or utcnow())
