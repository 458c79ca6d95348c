# tests/test_session_store.py

from datetime import timedelta

from conftest import signup
from crm.services import session_store
from crm.utils.database import utcnow


def test_session_store_operations(client, run_db):
    user_id = signup(client, "store@example.com").json()["data"]["user"]["id"]

    async def scenario(db):
        first = await session_store.create_session(db, user_id, "key-1", ip_address="10.0.0.1", user_agent="pytest")
        await session_store.create_session(db, user_id, "key-2")

        found = await session_store.find_session_by_token(db, "key-1")
        assert found.id == first.id
        assert found.ip_address == "10.0.0.1"
        assert not session_store.is_session_expired(found)
        assert session_store.is_session_expired(found, now=utcnow() + timedelta(days=8))

        await session_store.delete_session_by_token(db, "key-1")
        await session_store.delete_session_by_token(db, "key-1")
        assert await session_store.find_session_by_token(db, "key-1") is None

        # signup-сессия и key-2; key-2 остаётся
        revoked = await session_store.delete_all_sessions_for_user(db, user_id, keep_token="key-2")
        assert revoked == 1
        assert await session_store.find_session_by_token(db, "key-2") is not None

        return await session_store.delete_all_sessions_for_user(db, user_id)

    assert run_db(scenario) == 1


def test_session_expiry_defaults_to_refresh_lifetime(client, run_db):
    user_id = signup(client, "expiry@example.com").json()["data"]["user"]["id"]

    async def scenario(db):
        session = await session_store.create_session(db, user_id, "key-x")
        return session.expires_at - session.created_at

    assert run_db(scenario) == timedelta(days=7)
