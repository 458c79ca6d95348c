# tests/conftest.py

import asyncio
import os
import tempfile

# окружение до импорта crm: settings и engine читаются при импорте
_tmp_dir = tempfile.mkdtemp(prefix="crm-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_tmp_dir, 'test.db')}"
os.environ["LOG_DIR"] = os.path.join(_tmp_dir, "log")
os.environ["LOG_PRINT"] = "0"
os.environ["AUTH_SECRET_KEY"] = "test-secret-key-with-at-least-32-bytes"
os.environ["PASSWORD_HASH_ROUNDS"] = "1000"
os.environ["ENVIRONMENT"] = "test"
os.environ["ADMIN_EMAIL"] = "admin@example.com"
os.environ["ADMIN_PASSWORD"] = "Admin12345"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from crm.main import app  # noqa: E402
from crm.utils.database import Base, AsyncSessionLocal, engine  # noqa: E402

PASSWORD = "Valid1234"


async def _reset_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def client():
    """Чистая база на каждый тест; таблицы и админ создаются в lifespan."""
    asyncio.run(_reset_db())
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def run_db(client):
    """
    Выполняет корутину fn(db) в event loop приложения:
    run_db(fn) -> результат fn.
    """

    async def _call(fn):
        async with AsyncSessionLocal() as db:
            result = await fn(db)
            await db.commit()
            return result

    def runner(fn):
        return client.portal.call(_call, fn)

    return runner


def signup(client, email, full_name="John Doe", password=PASSWORD, role=None, **extra):
    payload = {"email": email, "password": password, "fullName": full_name, **extra}
    if role:
        payload["role"] = role
    return client.post("/auth/signup", json=payload)


def login(client, email, password=PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})


def use_cookies(client, **cookies):
    """Заменяет cookie клиента (без дублей с доменом из ответа сервера)."""
    client.cookies.clear()
    for name, value in cookies.items():
        client.cookies.set(name, value)
