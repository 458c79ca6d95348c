# crm/routes/auth.py

from fastapi import APIRouter, Depends, Request, status

from crm.middleware.auth import CurrentUser, get_current_user
from crm.schemas.user import (
    SignupRequest,
    LoginRequest,
    ProfileUpdate,
    PasswordChange,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
    UserResponse,
)
from crm.services.auth import (
    AuthResult,
    signup_service,
    login_service,
    logout_service,
    current_session_user,
    refresh_service,
    update_profile_service,
    change_password_service,
    forgot_password_service,
    reset_password_service,
    verify_email_service,
)
from crm.utils.cookies import set_auth_cookies, set_access_cookie, clear_auth_cookies
from crm.utils.response import success_response

router = APIRouter()

FORGOT_PASSWORD_MESSAGE = "If an account with this email exists, a password reset link has been sent"


def _auth_response(result: AuthResult, message: str, status_code: int):
    """Ответ входа/регистрации: пользователь + access-токен, обе cookie."""
    response = success_response(
        {
            "user": UserResponse.model_validate(result.user).dump(),
            "accessToken": result.access_token,
            "message": message,
        },
        status_code=status_code,
    )
    set_auth_cookies(response, result.access_token, result.refresh_token)
    return response


# ────────────── SIGNUP ──────────────
@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    summary="Регистрация нового пользователя",
    responses={
        201: {"description": "Пользователь создан, cookie accessToken/refreshToken установлены"},
        400: {"description": "WEAK_PASSWORD, EMAIL_EXISTS или VALIDATION_ERROR"},
        500: {"description": "SIGNUP_ERROR"},
    },
)
async def signup(payload: SignupRequest, request: Request):
    """
    Регистрация.

    - Пароль: 8–128 символов, заглавная, строчная буква и цифра.
    - Роль по умолчанию `channel_partner`: такому пользователю выдаётся
      реферальный код и создаётся запись партнёра.
    - Сразу открывается сессия (как при входе).
    """
    result = await signup_service(payload, request)
    return _auth_response(result, "Account created successfully!", status.HTTP_201_CREATED)


# ────────────── LOGIN ──────────────
@router.post(
    "/login",
    summary="Вход по email и паролю",
    responses={
        200: {"description": "Успешный вход, cookie установлены"},
        401: {"description": "INVALID_CREDENTIALS: неверный email или пароль"},
        403: {"description": "ACCOUNT_DISABLED: аккаунт отключён"},
    },
)
async def login(payload: LoginRequest, request: Request):
    """
    Неизвестный email и неверный пароль дают одинаковый ответ,
    чтобы нельзя было перебором узнать зарегистрированные адреса.
    """
    result = await login_service(payload, request)
    return _auth_response(result, "Login successful", status.HTTP_200_OK)


# ────────────── LOGOUT ──────────────
@router.post(
    "/logout",
    summary="Выход",
    responses={200: {"description": "Всегда успешен, cookie удалены"}},
)
async def logout(request: Request):
    await logout_service(request)
    response = success_response({"message": "Logged out successfully"})
    clear_auth_cookies(response)
    return response


# ────────────── SESSION ──────────────
@router.get(
    "/session",
    summary="Текущий пользователь по access-cookie",
    responses={
        200: {"description": "Пользователь (актуальные данные из базы)"},
        401: {"description": "UNAUTHORIZED или INVALID_TOKEN"},
        404: {"description": "USER_NOT_FOUND"},
    },
)
async def session(request: Request):
    user = await current_session_user(request)
    return success_response({"user": UserResponse.model_validate(user).dump()})


# ────────────── REFRESH ──────────────
@router.post(
    "/refresh",
    summary="Новый access-токен по refresh-cookie",
    responses={
        200: {"description": "Новый access-токен, cookie accessToken обновлена"},
        401: {"description": "NO_REFRESH_TOKEN, INVALID_REFRESH_TOKEN или SESSION_NOT_FOUND"},
    },
)
async def refresh(request: Request):
    access_token = await refresh_service(request)
    response = success_response({"accessToken": access_token, "message": "Token refreshed successfully"})
    set_access_cookie(response, access_token)
    return response


# ────────────── PROFILE ──────────────
@router.put(
    "/profile",
    summary="Обновление профиля",
    responses={
        200: {"description": "Профиль обновлён"},
        400: {"description": "EMAIL_EXISTS или VALIDATION_ERROR"},
        401: {"description": "Требуется авторизация"},
    },
)
async def update_profile(
    payload: ProfileUpdate,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
):
    user = await update_profile_service(current_user.id, payload, request)
    return success_response({"user": UserResponse.model_validate(user).dump()})


# ────────────── PASSWORD ──────────────
@router.put(
    "/password",
    summary="Смена пароля",
    responses={
        200: {"description": "Пароль изменён, остальные сессии завершены"},
        400: {"description": "INVALID_PASSWORD или WEAK_PASSWORD"},
        401: {"description": "Требуется авторизация"},
    },
)
async def change_password(
    payload: PasswordChange,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
):
    revoked = await change_password_service(current_user.id, payload, request)
    return success_response({"message": "Password changed successfully", "revokedSessions": revoked})


@router.post(
    "/forgot-password",
    summary="Запрос на сброс пароля",
    responses={200: {"description": "Ответ одинаковый для существующих и несуществующих email"}},
)
async def forgot_password(payload: ForgotPasswordRequest, request: Request):
    await forgot_password_service(payload, request)
    return success_response({"message": FORGOT_PASSWORD_MESSAGE})


@router.post(
    "/reset-password",
    summary="Сброс пароля по токену",
    responses={
        200: {"description": "Пароль изменён, все сессии завершены"},
        400: {"description": "INVALID_RESET_TOKEN или WEAK_PASSWORD"},
    },
)
async def reset_password(payload: ResetPasswordRequest, request: Request):
    await reset_password_service(payload, request)
    return success_response({"message": "Password has been reset successfully"})


@router.post(
    "/verify-email",
    summary="Подтверждение email",
    responses={
        200: {"description": "Email подтверждён"},
        400: {"description": "INVALID_VERIFICATION_TOKEN"},
    },
)
async def verify_email(payload: VerifyEmailRequest, request: Request):
    user = await verify_email_service(payload, request)
    return success_response({"user": UserResponse.model_validate(user).dump(), "message": "Email verified successfully"})
