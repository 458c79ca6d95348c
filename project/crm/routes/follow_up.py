# crm/routes/follow_up.py

from fastapi import APIRouter, Depends, Request

from crm.middleware.auth import CurrentUser, require_role
from crm.models.user import UserRole
from crm.schemas.follow_up import FollowUpUpdate, FollowUpResponse
from crm.services.follow_up import update_follow_up_service
from crm.utils.response import success_response

router = APIRouter()


@router.put(
    "/{follow_up_id}",
    summary="Обновить follow-up",
    responses={
        200: {"description": "Follow-up обновлён, запись добавлена в журнал"},
        400: {"description": "VALIDATION_ERROR"},
        403: {"description": "Лид назначен другому партнёру"},
        404: {"description": "Follow-up не найден"},
    },
)
async def update_follow_up(
    follow_up_id: str,
    payload: FollowUpUpdate,
    request: Request,
    current_user: CurrentUser = Depends(require_role(UserRole.ADMIN, UserRole.BUILDER, UserRole.CHANNEL_PARTNER)),
):
    """`status: completed` проставляет completedAt."""
    follow_up = await update_follow_up_service(follow_up_id, payload, current_user, request)
    return success_response({"followUp": FollowUpResponse.model_validate(follow_up).dump()})
