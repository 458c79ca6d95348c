# crm/utils/database.py

import asyncio
from datetime import datetime, timezone
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from sqlalchemy.future import select
from crm.config import settings
from crm.utils.security import hash_password

# ────────────── Base для моделей ──────────────
Base = declarative_base()

# ────────────── Асинхронный движок ──────────────
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False  # True можно включить для отладки SQL
)

if engine.dialect.name == "sqlite":
    @event.listens_for(engine.sync_engine, "connect")
    def _sqlite_foreign_keys(dbapi_connection, connection_record):
        # без PRAGMA SQLite игнорирует ondelete="CASCADE"
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# ────────────── Асинхронная сессия ──────────────
# expire_on_commit=False: после commit объекты читаются без ленивой загрузки
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite возвращает naive datetime, считаем его UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


# ────────────── Инициализация базы данных ──────────────
async def init_db() -> bool:
    """
    Создаёт все таблицы (если ещё не созданы) и проверяет наличие администратора.
    Если администратора нет, создаёт его из ADMIN_EMAIL / ADMIN_PASSWORD.

    Возвращает True, если администратор был создан.
    """
    # модели должны быть импортированы до create_all
    from crm.models import user, session, agent, lead, follow_up, activity  # noqa: F401
    from crm.models.user import User, UserRole

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        result = await db.execute(select(User).where(User.role == UserRole.ADMIN).limit(1))
        if result.scalar_one_or_none() is not None:
            return False

        db.add(User(
            email=settings.ADMIN_EMAIL.lower(),
            password_hash=await asyncio.to_thread(hash_password, settings.ADMIN_PASSWORD),
            full_name=settings.ADMIN_FULL_NAME,
            role=UserRole.ADMIN,
            is_active=True,
            email_verified=True,
        ))
        await db.commit()
        return True


async def close_db():
    await engine.dispose()
