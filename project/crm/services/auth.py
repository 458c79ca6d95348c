# crm/services/auth.py

"""
Сценарии авторизации: регистрация, вход, выход, текущая сессия,
обновление access-токена, смена пароля и профиля, сброс пароля,
подтверждение email.

Каждая функция: одна транзакция. Cookie ставят роуты (routes/auth.py),
сервис возвращает токены и пользователя.
"""

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from crm.config import settings
from crm.models.agent import Agent
from crm.models.user import User, UserRole
from crm.schemas.user import (
    SignupRequest,
    LoginRequest,
    ProfileUpdate,
    PasswordChange,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
)
from crm.services import session_store
from crm.utils.cookies import ACCESS_COOKIE, REFRESH_COOKIE
from crm.utils.database import utcnow, as_utc
from crm.utils.referral import generate_referral_code
from crm.utils.response import ApiError
from crm.utils.security import (
    ACCESS_TOKEN,
    REFRESH_TOKEN,
    pwd_context,
    hash_password,
    verify_password,
    validate_password_strength,
    token_claims,
    create_access_token,
    create_refresh_token,
    verify_token,
    random_opaque_token,
)

# Регистрация без роли = партнёр (channel_partner) + запись в agents
DEFAULT_SIGNUP_ROLE = UserRole.CHANNEL_PARTNER
REFERRAL_CODE_ATTEMPTS = 5


@dataclass
class AuthResult:
    user: User
    access_token: str
    refresh_token: str


# ────────────── Поиск пользователей ──────────────
async def get_user_by_id(db: AsyncSession, user_id: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


# ────────────── Вспомогательное ──────────────
def resolve_signup_role(requested: Optional[str]) -> str:
    return requested or DEFAULT_SIGNUP_ROLE


async def reserve_referral_code(db: AsyncSession, full_name: str) -> str:
    """
    Генерирует код и проверяет, что он свободен; не больше REFERRAL_CODE_ATTEMPTS проверок.
    Если все заняты, возвращается последний сгенерированный код:
    конфликт поймает уникальный индекс при commit (SIGNUP_ERROR).
    """
    code = generate_referral_code(full_name)
    for _ in range(REFERRAL_CODE_ATTEMPTS):
        result = await db.execute(select(User.id).where(User.referral_code == code))
        if result.first() is None:
            return code
        code = generate_referral_code(full_name)
    return code


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def refresh_session_key(request: Request) -> Optional[str]:
    """sid из refresh-cookie текущего запроса (подпись проверяется, срок нет)."""
    token = request.cookies.get(REFRESH_COOKIE)
    if not token:
        return None
    payload = verify_token(token, REFRESH_TOKEN, verify_exp=False)
    return payload.get("sid") if payload else None


async def open_session(db: AsyncSession, user: User, request: Request) -> AuthResult:
    """Выпускает пару токенов и создаёт строку sessions под refresh-токен."""
    session_key = random_opaque_token()
    claims = token_claims(user.id, user.email, user.role)

    await session_store.create_session(
        db,
        user_id=user.id,
        refresh_token=session_key,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return AuthResult(
        user=user,
        access_token=create_access_token(claims),
        refresh_token=create_refresh_token(claims, session_key),
    )


def _check_password_strength(password: str):
    check = validate_password_strength(password)
    if not check.valid:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "WEAK_PASSWORD", check.message)


def _email_exists_error() -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, "EMAIL_EXISTS", "An account with this email already exists")


# ────────────── SIGNUP ──────────────
async def signup_service(payload: SignupRequest, request: Request) -> AuthResult:
    db = request.state.db
    log = request.app.state.log
    email = payload.email.lower()

    _check_password_strength(payload.password)

    if await get_user_by_email(db, email):
        await log.log_warning("auth", "Регистрация: email уже занят", {"email": email})
        raise _email_exists_error()

    # хэширование в отдельном потоке, event loop не блокируется
    password_hash = await asyncio.to_thread(hash_password, payload.password)
    role = resolve_signup_role(payload.role)

    referral_code = None
    if role == UserRole.CHANNEL_PARTNER:
        referral_code = await reserve_referral_code(db, payload.full_name)

    now = utcnow()
    user = User(
        email=email,
        password_hash=password_hash,
        full_name=payload.full_name.strip(),
        phone=payload.phone or None,
        role=role,
        referral_code=referral_code,
        is_active=True,
        email_verified=False,
        verification_token=random_opaque_token(),
        verification_token_expires=now + timedelta(hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS),
    )

    try:
        db.add(user)
        await db.flush()

        if role == UserRole.CHANNEL_PARTNER:
            db.add(Agent(user_id=user.id, status="active"))

        result = await open_session(db, user, request)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if await get_user_by_email(db, email):
            raise _email_exists_error()
        await log.log_error("auth", f"Регистрация не удалась: {e.orig!r}", {"email": email})
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "SIGNUP_ERROR", "An error occurred during signup")

    await log.log_info("auth", "Пользователь зарегистрирован", {
        "user_id": user.id, "role": role, "referral_code": referral_code,
    })
    # доставка письма вне рамок сервиса
    await log.log_info("auth", "Выдан токен подтверждения email", {"user_id": user.id})
    return result


# ────────────── LOGIN ──────────────
async def login_service(payload: LoginRequest, request: Request) -> AuthResult:
    db = request.state.db
    log = request.app.state.log
    email = payload.email.lower()

    user = await get_user_by_email(db, email)
    if user is None:
        # выравниваем время ответа с неверным паролем
        await asyncio.to_thread(pwd_context.dummy_verify)
    if user is None or not await asyncio.to_thread(verify_password, payload.password, user.password_hash):
        await log.log_warning("auth", "Неудачная попытка входа", {"email": email})
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "INVALID_CREDENTIALS", "Invalid email or password")

    if not user.is_active:
        await log.log_warning("auth", "Вход в отключённый аккаунт", {"user_id": user.id})
        raise ApiError(status.HTTP_403_FORBIDDEN, "ACCOUNT_DISABLED", "Your account has been disabled")

    result = await open_session(db, user, request)
    user.last_login_at = utcnow()
    await db.commit()

    await log.log_info("auth", "Пользователь успешно авторизован", {"user_id": user.id})
    return result


# ────────────── LOGOUT ──────────────
async def logout_service(request: Request) -> None:
    """Удаляет сессию по refresh-cookie, если она есть. Никогда не падает на отсутствующей сессии."""
    db = request.state.db
    log = request.app.state.log

    session_key = refresh_session_key(request)
    if session_key:
        await session_store.delete_session_by_token(db, session_key)
        await db.commit()

    await log.log_info("auth", "Выход из системы", {"had_session": bool(session_key)})


# ────────────── SESSION ──────────────
async def current_session_user(request: Request) -> User:
    """Пользователь по access-cookie, всегда свежий из базы."""
    db = request.state.db

    token = request.cookies.get(ACCESS_COOKIE)
    if not token:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "UNAUTHORIZED", "Not authenticated")

    payload = verify_token(token, ACCESS_TOKEN)
    if payload is None:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "INVALID_TOKEN", "Invalid or expired token")

    user = await get_user_by_id(db, payload["sub"])
    if user is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "USER_NOT_FOUND", "User not found")
    return user


# ────────────── REFRESH ──────────────
async def refresh_service(request: Request) -> str:
    """
    Новый access-токен по refresh-cookie. Refresh-токен и строка сессии
    не меняются; удалённая на сервере сессия делает токен недействительным.
    """
    db = request.state.db
    log = request.app.state.log

    token = request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "NO_REFRESH_TOKEN", "Refresh token not found")

    payload = verify_token(token, REFRESH_TOKEN)
    if payload is None or not payload.get("sid"):
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "INVALID_REFRESH_TOKEN", "Invalid or expired refresh token")

    session = await session_store.find_session_by_token(db, payload["sid"])
    if session is not None and session_store.is_session_expired(session):
        await session_store.delete_session_by_token(db, session.token)
        await db.commit()
        session = None
    if session is None or session.user_id != payload["sub"]:
        await log.log_warning("auth", "Refresh: сессия не найдена", {"user_id": payload["sub"]})
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "SESSION_NOT_FOUND", "Session not found")

    # claims берутся из актуальной строки users, а не из refresh-токена
    user = await get_user_by_id(db, session.user_id)
    if user is None or not user.is_active:
        await log.log_warning("auth", "Refresh: пользователь не найден или отключён", {"user_id": session.user_id})
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "UNAUTHORIZED", "User not found or inactive")

    return create_access_token(token_claims(user.id, user.email, user.role))


# ────────────── PROFILE ──────────────
async def update_profile_service(user_id: str, payload: ProfileUpdate, request: Request) -> User:
    db = request.state.db
    log = request.app.state.log

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "USER_NOT_FOUND", "User not found")

    changes = payload.model_dump(exclude_unset=True)

    email = changes.pop("email", None)
    if email and email.lower() != user.email:
        email = email.lower()
        other = await get_user_by_email(db, email)
        if other is not None and other.id != user.id:
            raise _email_exists_error()
        user.email = email

    full_name = changes.pop("full_name", None)
    if full_name:
        user.full_name = full_name.strip()

    if "phone" in changes:
        user.phone = changes["phone"] or None

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise _email_exists_error()

    await log.log_info("auth", "Профиль обновлён", {"user_id": user.id})
    return user


# ────────────── PASSWORD ──────────────
async def change_password_service(user_id: str, payload: PasswordChange, request: Request) -> int:
    """
    Смена пароля. Все остальные сессии пользователя удаляются,
    сессия текущего устройства (sid из refresh-cookie) остаётся.
    Возвращает число завершённых сессий.
    """
    db = request.state.db
    log = request.app.state.log

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise ApiError(status.HTTP_404_NOT_FOUND, "USER_NOT_FOUND", "User not found")

    if not await asyncio.to_thread(verify_password, payload.current_password, user.password_hash):
        await log.log_warning("auth", "Смена пароля: неверный текущий пароль", {"user_id": user.id})
        raise ApiError(status.HTTP_400_BAD_REQUEST, "INVALID_PASSWORD", "Current password is incorrect")

    _check_password_strength(payload.new_password)

    user.password_hash = await asyncio.to_thread(hash_password, payload.new_password)
    revoked = await session_store.delete_all_sessions_for_user(
        db, user.id, keep_token=refresh_session_key(request)
    )
    await db.commit()

    await log.log_info("auth", "Пароль изменён", {"user_id": user.id, "revoked_sessions": revoked})
    return revoked


async def forgot_password_service(payload: ForgotPasswordRequest, request: Request) -> None:
    """Ответ одинаковый независимо от того, есть ли такой email."""
    db = request.state.db
    log = request.app.state.log

    user = await get_user_by_email(db, payload.email)
    if user is None or not user.is_active:
        await log.log_info("auth", "Сброс пароля: аккаунт не найден")
        return

    user.reset_token = random_opaque_token()
    user.reset_token_expires = utcnow() + timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES)
    await db.commit()

    # доставка письма вне рамок сервиса
    await log.log_info("auth", "Выдан токен сброса пароля", {"user_id": user.id})


async def reset_password_service(payload: ResetPasswordRequest, request: Request) -> None:
    db = request.state.db
    log = request.app.state.log

    _check_password_strength(payload.new_password)

    result = await db.execute(select(User).where(User.reset_token == payload.token))
    user = result.scalar_one_or_none()
    if user is None or user.reset_token_expires is None or as_utc(user.reset_token_expires) <= utcnow():
        raise ApiError(status.HTTP_400_BAD_REQUEST, "INVALID_RESET_TOKEN", "Invalid or expired reset token")

    user.password_hash = await asyncio.to_thread(hash_password, payload.new_password)
    user.reset_token = None
    user.reset_token_expires = None
    revoked = await session_store.delete_all_sessions_for_user(db, user.id)
    await db.commit()

    await log.log_info("auth", "Пароль сброшен", {"user_id": user.id, "revoked_sessions": revoked})


async def verify_email_service(payload: VerifyEmailRequest, request: Request) -> User:
    db = request.state.db
    log = request.app.state.log

    result = await db.execute(select(User).where(User.verification_token == payload.token))
    user = result.scalar_one_or_none()
    if (
        user is None
        or user.verification_token_expires is None
        or as_utc(user.verification_token_expires) <= utcnow()
    ):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "INVALID_VERIFICATION_TOKEN", "Invalid or expired verification token")

    user.email_verified = True
    user.verification_token = None
    user.verification_token_expires = None
    await db.commit()

    await log.log_info("auth", "Email подтверждён", {"user_id": user.id})
    return user
