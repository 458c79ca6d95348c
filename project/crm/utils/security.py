# crm/utils/security.py

"""
Пароли и токены.

Пароли: passlib, схема sha256_crypt (соль + фиксированное число раундов
PASSWORD_HASH_ROUNDS), чтобы избежать проблем с bcrypt-бэкендом.

Токены: PyJWT, HS256.
- access: 15 минут, секрет AUTH_SECRET_KEY, claim type="access"
- refresh: 7 дней, секрет AUTH_REFRESH_SECRET_KEY (или AUTH_SECRET_KEY),
  claim type="refresh" и sid: ключ серверной сессии
"""

import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jwt import encode, decode, InvalidTokenError
from passlib.context import CryptContext

from crm.config import settings

pwd_context = CryptContext(
    schemes=["sha256_crypt"],
    deprecated="auto",
    sha256_crypt__default_rounds=settings.PASSWORD_HASH_ROUNDS,
)

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


# ────────────── Пароли ──────────────
def hash_password(password: str) -> str:
    """Хэширует пароль (соль генерируется passlib)."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Проверяет совпадение пароля с его хэшем."""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # хэш в неизвестном формате
        return False


@dataclass
class PasswordCheck:
    valid: bool
    message: Optional[str] = None


def validate_password_strength(password: str) -> PasswordCheck:
    """
    Проверка сложности пароля. Возвращает первую найденную причину отказа.
    """
    if len(password) < PASSWORD_MIN_LENGTH:
        return PasswordCheck(False, f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if len(password) > PASSWORD_MAX_LENGTH:
        return PasswordCheck(False, f"Password must not exceed {PASSWORD_MAX_LENGTH} characters")

    has_upper = re.search(r"[A-Z]", password) is not None
    has_lower = re.search(r"[a-z]", password) is not None
    has_digit = re.search(r"[0-9]", password) is not None
    if not (has_upper and has_lower and has_digit):
        return PasswordCheck(
            False,
            "Password must contain at least one uppercase letter, one lowercase letter, and one number",
        )
    return PasswordCheck(True)


# ────────────── JWT ──────────────
def _secret(token_type: str) -> str:
    return settings.refresh_secret if token_type == REFRESH_TOKEN else settings.AUTH_SECRET_KEY


def _create_token(data: dict, token_type: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    to_encode = data.copy()
    to_encode.update({"type": token_type, "iat": now, "exp": now + expires_delta})
    return encode(to_encode, _secret(token_type), algorithm=settings.AUTH_ALGORITHM)


def token_claims(user_id: str, email: str, role: str) -> dict:
    return {"sub": user_id, "email": email, "role": role}


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Вход: {"sub": user_id, "email": ..., "role": ...}
    Выход: JWT строка, по умолчанию живёт ACCESS_TOKEN_EXPIRE_MINUTES
    """
    return _create_token(
        data,
        ACCESS_TOKEN,
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(data: dict, session_key: str, expires_delta: Optional[timedelta] = None) -> str:
    """Refresh-токен содержит sid: ключ строки в таблице sessions."""
    return _create_token(
        {**data, "sid": session_key},
        REFRESH_TOKEN,
        expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def verify_token(token: str, token_type: str = ACCESS_TOKEN, verify_exp: bool = True) -> Optional[dict]:
    """
    Проверяет подпись, срок действия и тип токена.
    При любой ошибке возвращает None, исключения наружу не выходят.
    """
    try:
        payload = decode(
            token,
            _secret(token_type),
            algorithms=[settings.AUTH_ALGORITHM],
            options={"verify_exp": verify_exp},
        )
    except InvalidTokenError:
        return None

    if payload.get("type") != token_type or not payload.get("sub"):
        return None
    return payload


def random_opaque_token() -> str:
    """256 бит случайности в hex."""
    return secrets.token_hex(32)
