# crm/middleware/auth.py

"""
Зависимости авторизации для защищённых роутов.

- get_current_user: access-токен из cookie (или заголовка Authorization: Bearer),
  пользователь перечитывается из базы; 401 при любой ошибке
- require_role(...): поверх get_current_user, 403 если роль не разрешена
- optional_user: то же извлечение, но без ошибок: None вместо пользователя
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from crm.services.auth import get_user_by_id
from crm.utils.cookies import ACCESS_COOKIE
from crm.utils.response import ApiError
from crm.utils.security import ACCESS_TOKEN, verify_token

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    id: str
    email: str
    role: str
    email_verified: bool


def _extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    token = request.cookies.get(ACCESS_COOKIE)
    if token:
        return token
    if credentials and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    return None


async def _load_user(request: Request, payload: dict) -> Optional[CurrentUser]:
    user = await get_user_by_id(request.state.db, payload["sub"])
    if user is None or not user.is_active:
        return None

    current = CurrentUser(id=user.id, email=user.email, role=user.role, email_verified=user.email_verified)
    request.state.user = current
    return current


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    token = _extract_token(request, credentials)
    if not token:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "UNAUTHORIZED", "Authentication required")

    payload = verify_token(token, ACCESS_TOKEN)
    if payload is None:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "INVALID_TOKEN", "Invalid or expired token")

    user = await _load_user(request, payload)
    if user is None:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "UNAUTHORIZED", "User not found or inactive")
    return user


def require_role(*allowed_roles: str):
    """Depends(require_role("admin", "builder"))"""

    async def checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed_roles:
            raise ApiError(
                status.HTTP_403_FORBIDDEN,
                "FORBIDDEN",
                f"Access denied. Required roles: {', '.join(allowed_roles)}",
            )
        return current_user

    return checker


async def optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[CurrentUser]:
    token = _extract_token(request, credentials)
    if not token:
        return None
    payload = verify_token(token, ACCESS_TOKEN)
    if payload is None:
        return None
    return await _load_user(request, payload)
