# crm/services/lead.py

"""
Лиды: публичная заявка с реферальным кодом, список и карточка с учётом роли,
обновление.

Партнёр (channel_partner) видит только лиды, привязанные к его записи agents;
admin и builder видят все.
"""

from typing import Optional

from fastapi import Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from crm.middleware.auth import CurrentUser
from crm.models.agent import Agent
from crm.models.lead import Lead, LeadSource, LeadStatus
from crm.models.user import User, UserRole
from crm.schemas.lead import LeadPublicCreate, LeadUpdate
from crm.services.activity import record_activity
from crm.utils.referral import is_valid_referral_code, normalize_referral_code
from crm.utils.response import ApiError

REFERRAL_MESSAGE = "Lead submitted successfully! Your channel partner will contact you soon."
WEBSITE_MESSAGE = "Lead submitted successfully! We will contact you soon."


async def get_agent_for_user(db: AsyncSession, user_id: str) -> Optional[Agent]:
    result = await db.execute(select(Agent).where(Agent.user_id == user_id).limit(1))
    return result.scalar_one_or_none()


async def find_channel_partner(db: AsyncSession, referral_code: str) -> Optional[User]:
    """Активный партнёр с таким кодом (код сравнивается в верхнем регистре)."""
    result = await db.execute(
        select(User).where(
            User.referral_code == normalize_referral_code(referral_code),
            User.role == UserRole.CHANNEL_PARTNER,
            User.is_active.is_(True),
        ).limit(1)
    )
    return result.scalar_one_or_none()


# ────────────── Публичная заявка ──────────────
async def submit_public_lead_service(
    payload: LeadPublicCreate,
    request: Request,
    submitted_by: Optional[CurrentUser] = None,
) -> tuple[Lead, str]:
    db = request.state.db
    log = request.app.state.log

    referral_code = normalize_referral_code(payload.referral_code) if payload.referral_code else None
    assigned_agent_id = None
    channel_partner_id = None

    if referral_code:
        if not is_valid_referral_code(referral_code):
            await log.log_warning("lead", "Реферальный код в неверном формате", {"referral_code": referral_code})
            raise ApiError(status.HTTP_400_BAD_REQUEST, "INVALID_REFERRAL_CODE", "Invalid or inactive referral code")

        partner = await find_channel_partner(db, referral_code)
        if partner is None:
            await log.log_warning("lead", "Неизвестный реферальный код", {"referral_code": referral_code})
            raise ApiError(status.HTTP_400_BAD_REQUEST, "INVALID_REFERRAL_CODE", "Invalid or inactive referral code")

        agent = await get_agent_for_user(db, partner.id)
        if agent is not None:
            assigned_agent_id = agent.id
            channel_partner_id = partner.id

    meta = {
        "referralCode": referral_code,
        "channelPartnerId": channel_partner_id,
        "submittedFrom": "website",
    }
    if submitted_by is not None:
        meta["submittedBy"] = submitted_by.id

    lead = Lead(
        name=payload.name.strip(),
        email=payload.email,
        phone=payload.phone,
        status=LeadStatus.NEW,
        source=LeadSource.REFERRAL if referral_code else LeadSource.WEBSITE,
        assigned_agent_id=assigned_agent_id,
        budget=payload.budget,
        notes=payload.notes,
        meta=meta,
    )
    db.add(lead)
    await db.commit()
    await db.refresh(lead)

    await log.log_info("lead", "Лид создан", {
        "id": lead.id, "source": lead.source, "agent_id": assigned_agent_id,
    })
    return lead, REFERRAL_MESSAGE if referral_code else WEBSITE_MESSAGE


# ────────────── Список ──────────────
async def list_leads_service(current_user: CurrentUser, request: Request) -> list[Lead]:
    """Новые первыми. Партнёр без записи agents получает пустой список."""
    db = request.state.db
    log = request.app.state.log

    query = select(Lead).order_by(Lead.created_at.desc())
    if current_user.role == UserRole.CHANNEL_PARTNER:
        agent = await get_agent_for_user(db, current_user.id)
        if agent is None:
            await log.log_warning("lead", "У партнёра нет записи agents", {"user_id": current_user.id})
            return []
        query = query.where(Lead.assigned_agent_id == agent.id)

    result = await db.execute(query)
    leads = list(result.scalars().all())

    await log.log_info("lead", f"{len(leads)} лидов загружено", {"user_id": current_user.id})
    return leads


# ────────────── Карточка ──────────────
async def get_lead_for_user(lead_id: str, current_user: CurrentUser, request: Request) -> Lead:
    """Лид с проверкой доступа: 404 если нет, 403 если чужой для партнёра."""
    db = request.state.db
    log = request.app.state.log

    result = await db.execute(select(Lead).where(Lead.id == lead_id))
    lead = result.scalar_one_or_none()
    if lead is None:
        await log.log_error("lead", "Лид не найден", {"id": lead_id})
        raise ApiError(status.HTTP_404_NOT_FOUND, "NOT_FOUND", "Lead not found")

    if current_user.role == UserRole.CHANNEL_PARTNER:
        agent = await get_agent_for_user(db, current_user.id)
        if agent is None or lead.assigned_agent_id != agent.id:
            await log.log_warning("lead", "Доступ к чужому лиду", {"id": lead_id, "user_id": current_user.id})
            raise ApiError(status.HTTP_403_FORBIDDEN, "FORBIDDEN", "You do not have access to this lead")

    return lead


# ────────────── Обновление ──────────────
async def update_lead_service(lead_id: str, lead_update: LeadUpdate, current_user: CurrentUser, request: Request) -> Lead:
    """
    Частичное обновление. Статус можно поставить любой из перечисленных,
    порядок переходов не проверяется. Смена статуса пишется в журнал.
    """
    db = request.state.db
    log = request.app.state.log

    lead = await get_lead_for_user(lead_id, current_user, request)
    old_status = lead.status

    changes = lead_update.model_dump(exclude_unset=True)
    for key in ("name", "phone", "status"):
        # NOT NULL колонки: явный null не применяем
        if key in changes and changes[key] is None:
            changes.pop(key)
    for key, value in changes.items():
        setattr(lead, key, value)

    if lead.status != old_status:
        record_activity(
            db,
            entity_type="lead",
            entity_id=lead.id,
            user_id=current_user.id,
            activity_type="status_changed",
            description=f"Status changed from {old_status} to {lead.status}",
            meta={"oldStatus": old_status, "newStatus": lead.status},
        )

    await db.commit()
    await db.refresh(lead)

    await log.log_info("lead", "Лид обновлён", {"id": lead.id, "fields": sorted(changes)})
    return lead
