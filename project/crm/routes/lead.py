# crm/routes/lead.py

from typing import Optional

from fastapi import APIRouter, Depends, Request, status

from crm.middleware.auth import CurrentUser, require_role, optional_user
from crm.models.user import UserRole
from crm.schemas.lead import LeadPublicCreate, LeadUpdate, LeadResponse
from crm.schemas.follow_up import FollowUpCreate, FollowUpResponse, ActivityResponse
from crm.services.lead import (
    submit_public_lead_service,
    list_leads_service,
    get_lead_for_user,
    update_lead_service,
)
from crm.services.follow_up import (
    create_follow_up_service,
    list_follow_ups_service,
    list_lead_activities_service,
)
from crm.utils.response import success_response

router = APIRouter()

# customer в CRM не работает
lead_roles = require_role(UserRole.ADMIN, UserRole.BUILDER, UserRole.CHANNEL_PARTNER)


# ────────────── PUBLIC CREATE ──────────────
@router.post(
    "/public",
    status_code=status.HTTP_201_CREATED,
    summary="Заявка с сайта (без авторизации)",
    responses={
        201: {"description": "Лид создан"},
        400: {"description": "INVALID_REFERRAL_CODE или VALIDATION_ERROR"},
    },
)
async def create_public_lead(
    payload: LeadPublicCreate,
    request: Request,
    current_user: Optional[CurrentUser] = Depends(optional_user),
):
    """
    Публичная заявка. Реферальный код (регистр не важен) привязывает лид
    к партнёру: source=referral, assignedAgentId = запись партнёра.
    Без кода: source=website, лид не назначен.
    """
    lead, message = await submit_public_lead_service(payload, request, submitted_by=current_user)
    return success_response(
        {"lead": LeadResponse.model_validate(lead).dump(), "message": message},
        status_code=status.HTTP_201_CREATED,
    )


# ────────────── READ ALL ──────────────
@router.get(
    "",
    summary="Список лидов",
    responses={
        200: {"description": "Лиды, новые первыми; партнёр видит только свои"},
        401: {"description": "Требуется авторизация"},
        403: {"description": "Роль не допускается"},
    },
)
async def read_leads(request: Request, current_user: CurrentUser = Depends(lead_roles)):
    try:
        leads = await list_leads_service(current_user, request)
        return success_response({
            "leads": [LeadResponse.model_validate(lead).dump() for lead in leads],
            "total": len(leads),
        })
    except Exception as e:
        await request.app.state.log.log_error("lead", f"Ошибка при получении списка лидов: {e!r}")
        raise


# ────────────── READ ONE ──────────────
@router.get(
    "/{lead_id}",
    summary="Лид по ID",
    responses={
        200: {"description": "Лид найден"},
        403: {"description": "Лид назначен другому партнёру"},
        404: {"description": "Лид не найден"},
    },
)
async def read_lead(lead_id: str, request: Request, current_user: CurrentUser = Depends(lead_roles)):
    lead = await get_lead_for_user(lead_id, current_user, request)
    return success_response({"lead": LeadResponse.model_validate(lead).dump()})


# ────────────── UPDATE ──────────────
@router.put(
    "/{lead_id}",
    summary="Обновить лид",
    responses={
        200: {"description": "Лид обновлён"},
        400: {"description": "VALIDATION_ERROR (например, неизвестный статус)"},
        403: {"description": "Лид назначен другому партнёру"},
        404: {"description": "Лид не найден"},
    },
)
async def update_lead(
    lead_id: str,
    lead_update: LeadUpdate,
    request: Request,
    current_user: CurrentUser = Depends(lead_roles),
):
    try:
        lead = await update_lead_service(lead_id, lead_update, current_user, request)
        return success_response({"lead": LeadResponse.model_validate(lead).dump()})
    except Exception as e:
        await request.app.state.log.log_error("lead", f"Ошибка при обновлении лида: {e!r}", {"id": lead_id})
        raise


# ────────────── FOLLOW-UPS ──────────────
@router.post(
    "/{lead_id}/follow-ups",
    status_code=status.HTTP_201_CREATED,
    summary="Запланировать follow-up",
    responses={
        201: {"description": "Follow-up создан"},
        400: {"description": "VALIDATION_ERROR (время в прошлом, неизвестный тип)"},
        403: {"description": "Лид назначен другому партнёру"},
        404: {"description": "Лид не найден"},
    },
)
async def create_follow_up(
    lead_id: str,
    payload: FollowUpCreate,
    request: Request,
    current_user: CurrentUser = Depends(lead_roles),
):
    follow_up = await create_follow_up_service(lead_id, payload, current_user, request)
    return success_response(
        {"followUp": FollowUpResponse.model_validate(follow_up).dump()},
        status_code=status.HTTP_201_CREATED,
    )


@router.get(
    "/{lead_id}/follow-ups",
    summary="Follow-up по лиду",
    responses={200: {"description": "Список, ближайшие первыми"}},
)
async def read_follow_ups(lead_id: str, request: Request, current_user: CurrentUser = Depends(lead_roles)):
    follow_ups = await list_follow_ups_service(lead_id, current_user, request)
    return success_response({
        "followUps": [FollowUpResponse.model_validate(f).dump() for f in follow_ups],
        "total": len(follow_ups),
    })


# ────────────── ACTIVITIES ──────────────
@router.get(
    "/{lead_id}/activities",
    summary="Журнал лида",
    responses={200: {"description": "Записи журнала, новые первыми"}},
)
async def read_activities(lead_id: str, request: Request, current_user: CurrentUser = Depends(lead_roles)):
    activities = await list_lead_activities_service(lead_id, current_user, request)
    return success_response({
        "activities": [ActivityResponse.model_validate(a).dump() for a in activities],
        "total": len(activities),
    })
