# tests/test_leads.py

from datetime import datetime, timedelta, timezone

from sqlalchemy import update

from conftest import signup, login
from crm.models.user import User

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Admin12345"


def _future(hours=24):
    return (datetime.now(timezone.utc) + timedelta(hours=hours)).isoformat()


def _partner(client, email="partner@example.com", full_name="Priya Sharma"):
    """Регистрирует партнёра и оставляет его cookie в клиенте."""
    return signup(client, email, full_name=full_name).json()["data"]["user"]


def _submit(client, **fields):
    payload = {"name": "Ravi Kumar", "phone": "+919812345678", **fields}
    return client.post("/leads/public", json=payload)


def _as_admin(client):
    client.cookies.clear()
    assert login(client, ADMIN_EMAIL, ADMIN_PASSWORD).status_code == 200


# ────────────── Публичная заявка ──────────────
def test_public_lead_with_referral_code_is_assigned(client):
    partner = _partner(client)
    client.cookies.clear()

    resp = _submit(client, referralCode=partner["referralCode"].lower(), email="ravi@example.com", budget=7500000)
    assert resp.status_code == 201
    data = resp.json()["data"]
    lead = data["lead"]
    assert lead["source"] == "referral"
    assert lead["status"] == "new"
    assert lead["assignedAgentId"] is not None
    assert lead["budget"] == 7500000
    assert lead["metadata"]["referralCode"] == partner["referralCode"]
    assert lead["metadata"]["channelPartnerId"] == partner["id"]
    assert "submittedBy" not in lead["metadata"]
    assert data["message"] == "Lead submitted successfully! Your channel partner will contact you soon."


def test_public_lead_without_code_is_website_lead(client):
    resp = _submit(client)
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["lead"]["source"] == "website"
    assert data["lead"]["assignedAgentId"] is None
    assert data["lead"]["metadata"]["referralCode"] is None
    assert data["message"] == "Lead submitted successfully! We will contact you soon."


def test_public_lead_unknown_referral_code(client):
    resp = _submit(client, referralCode="ZZ000000")
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_REFERRAL_CODE"


def test_public_lead_malformed_referral_code(client):
    resp = _submit(client, referralCode="not-a-code!")
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_REFERRAL_CODE"


def test_public_lead_digits_only_referral_code(client):
    partner = _partner(client, full_name="Łukasz Żak")
    client.cookies.clear()
    assert partner["referralCode"].isdigit()

    resp = _submit(client, referralCode=partner["referralCode"])
    assert resp.status_code == 201
    assert resp.json()["data"]["lead"]["source"] == "referral"
    assert resp.json()["data"]["lead"]["assignedAgentId"] is not None


def test_public_lead_inactive_partner_code_is_rejected(client, run_db):
    partner = _partner(client)
    client.cookies.clear()

    async def disable(db):
        await db.execute(update(User).where(User.id == partner["id"]).values(is_active=False))
    run_db(disable)

    resp = _submit(client, referralCode=partner["referralCode"])
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_REFERRAL_CODE"


def test_public_lead_records_logged_in_submitter(client):
    partner = _partner(client)
    resp = _submit(client)
    assert resp.json()["data"]["lead"]["metadata"]["submittedBy"] == partner["id"]


def test_public_lead_validation(client):
    resp = _submit(client, phone="123")
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    resp = client.post("/leads/public", json={"phone": "+919812345678"})
    assert resp.status_code == 400

    resp = _submit(client, budget=-1)
    assert resp.status_code == 400


# ────────────── Список ──────────────
def test_partner_sees_only_own_leads(client):
    first = _partner(client, "first@example.com", "Anil Mehta")
    second = _partner(client, "second@example.com", "Sunita Rao")
    client.cookies.clear()

    _submit(client, name="Lead One", referralCode=first["referralCode"])
    _submit(client, name="Lead Two", referralCode=second["referralCode"])
    _submit(client, name="Lead Three")

    login(client, "first@example.com")
    resp = client.get("/leads")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["total"] == 1
    assert [lead["name"] for lead in data["leads"]] == ["Lead One"]


def test_admin_sees_all_leads_newest_first(client):
    partner = _partner(client)
    client.cookies.clear()

    _submit(client, name="Oldest")
    _submit(client, name="Middle", referralCode=partner["referralCode"])
    _submit(client, name="Newest")

    _as_admin(client)
    data = client.get("/leads").json()["data"]
    assert data["total"] == 3
    assert [lead["name"] for lead in data["leads"]] == ["Newest", "Middle", "Oldest"]


def test_builder_sees_all_leads(client):
    _submit(client, name="Any Lead")
    signup(client, "builder@example.com", full_name="Bob Builder", role="builder")
    assert client.get("/leads").json()["data"]["total"] == 1


def test_customer_is_forbidden(client):
    signup(client, "customer@example.com", full_name="Carl Customer", role="customer")
    resp = client.get("/leads")
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"


def test_leads_require_auth(client):
    resp = client.get("/leads")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "UNAUTHORIZED"


# ────────────── Карточка и обновление ──────────────
def test_get_lead_scoping(client):
    owner = _partner(client, "owner@example.com", "Omar Khan")
    _partner(client, "other@example.com", "Olga Ivanova")
    client.cookies.clear()
    lead_id = _submit(client, referralCode=owner["referralCode"]).json()["data"]["lead"]["id"]

    login(client, "other@example.com")
    resp = client.get(f"/leads/{lead_id}")
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"

    login(client, "owner@example.com")
    resp = client.get(f"/leads/{lead_id}")
    assert resp.status_code == 200
    assert resp.json()["data"]["lead"]["id"] == lead_id

    resp = client.get("/leads/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


def test_update_lead_status_records_activity(client):
    partner = _partner(client)
    client.cookies.clear()
    lead_id = _submit(client, referralCode=partner["referralCode"]).json()["data"]["lead"]["id"]
    login(client, "partner@example.com")

    resp = client.put(f"/leads/{lead_id}", json={"status": "qualified", "notes": "Interested in 3BHK"})
    assert resp.status_code == 200
    lead = resp.json()["data"]["lead"]
    assert lead["status"] == "qualified"
    assert lead["notes"] == "Interested in 3BHK"

    # статус можно поставить любой, в том числе «назад»
    assert client.put(f"/leads/{lead_id}", json={"status": "new"}).status_code == 200

    activities = client.get(f"/leads/{lead_id}/activities").json()["data"]["activities"]
    assert [a["activityType"] for a in activities] == ["status_changed", "status_changed"]
    assert activities[0]["metadata"] == {"oldStatus": "qualified", "newStatus": "new"}
    assert activities[1]["metadata"] == {"oldStatus": "new", "newStatus": "qualified"}


def test_update_lead_without_status_change_records_nothing(client):
    lead_id = _submit(client).json()["data"]["lead"]["id"]
    _as_admin(client)

    resp = client.put(f"/leads/{lead_id}", json={"budget": 5000000})
    assert resp.status_code == 200
    assert resp.json()["data"]["lead"]["budget"] == 5000000
    assert client.get(f"/leads/{lead_id}/activities").json()["data"]["total"] == 0


def test_update_lead_invalid_status(client):
    lead_id = _submit(client).json()["data"]["lead"]["id"]
    _as_admin(client)

    resp = client.put(f"/leads/{lead_id}", json={"status": "archived"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


def test_update_foreign_lead_is_forbidden(client):
    lead_id = _submit(client).json()["data"]["lead"]["id"]
    _partner(client)
    resp = client.put(f"/leads/{lead_id}", json={"status": "contacted"})
    assert resp.status_code == 403


# ────────────── Follow-up ──────────────
def test_follow_up_lifecycle(client):
    lead_id = _submit(client).json()["data"]["lead"]["id"]
    _as_admin(client)

    later = client.post(f"/leads/{lead_id}/follow-ups", json={"scheduledAt": _future(48), "type": "meeting"})
    sooner = client.post(
        f"/leads/{lead_id}/follow-ups",
        json={"scheduledAt": _future(2), "type": "call", "notes": "Discuss pricing"},
    )
    assert later.status_code == sooner.status_code == 201
    sooner_id = sooner.json()["data"]["followUp"]["id"]
    assert sooner.json()["data"]["followUp"]["status"] == "pending"
    assert sooner.json()["data"]["followUp"]["completedAt"] is None

    listed = client.get(f"/leads/{lead_id}/follow-ups").json()["data"]
    assert listed["total"] == 2
    assert [f["type"] for f in listed["followUps"]] == ["call", "meeting"]

    resp = client.put(f"/follow-ups/{sooner_id}", json={"status": "completed", "notes": "Client agreed to visit"})
    assert resp.status_code == 200
    follow_up = resp.json()["data"]["followUp"]
    assert follow_up["status"] == "completed"
    assert follow_up["completedAt"] is not None
    assert follow_up["notes"] == "Client agreed to visit"

    activities = client.get(f"/leads/{lead_id}/activities").json()["data"]["activities"]
    assert [a["activityType"] for a in activities] == ["follow_up_updated", "follow_up_created", "follow_up_created"]
    assert activities[0]["entityId"] == sooner_id
    assert activities[0]["metadata"]["newStatus"] == "completed"


def test_follow_up_in_the_past_is_rejected(client):
    lead_id = _submit(client).json()["data"]["lead"]["id"]
    _as_admin(client)

    past = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
    resp = client.post(f"/leads/{lead_id}/follow-ups", json={"scheduledAt": past, "type": "call"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


def test_follow_up_unknown_type(client):
    lead_id = _submit(client).json()["data"]["lead"]["id"]
    _as_admin(client)
    resp = client.post(f"/leads/{lead_id}/follow-ups", json={"scheduledAt": _future(), "type": "fax"})
    assert resp.status_code == 400


def test_follow_up_access_follows_lead(client):
    lead_id = _submit(client).json()["data"]["lead"]["id"]
    _as_admin(client)
    follow_up_id = client.post(
        f"/leads/{lead_id}/follow-ups", json={"scheduledAt": _future(), "type": "email"}
    ).json()["data"]["followUp"]["id"]

    _partner(client)
    assert client.post(f"/leads/{lead_id}/follow-ups", json={"scheduledAt": _future(), "type": "call"}).status_code == 403
    assert client.put(f"/follow-ups/{follow_up_id}", json={"status": "cancelled"}).status_code == 403

    resp = client.put("/follow-ups/does-not-exist", json={"status": "cancelled"})
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"
