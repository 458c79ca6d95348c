# crm/utils/cookies.py

"""
Cookie с токенами. Удаление должно повторять те же атрибуты
(domain/path/secure/samesite), с которыми cookie ставилась, иначе браузер её не сотрёт.
"""

from fastapi import Response

from crm.config import settings

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def cookie_options() -> dict:
    # production: фронтенд на другом домене → SameSite=None + Secure
    return {
        "path": "/",
        "domain": settings.COOKIE_DOMAIN,
        "secure": settings.is_production,
        "httponly": True,
        "samesite": "none" if settings.is_production else "lax",
    }


def set_access_cookie(response: Response, token: str):
    response.set_cookie(
        ACCESS_COOKIE,
        token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        **cookie_options(),
    )


def set_refresh_cookie(response: Response, token: str):
    response.set_cookie(
        REFRESH_COOKIE,
        token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        **cookie_options(),
    )


def set_auth_cookies(response: Response, access_token: str, refresh_token: str):
    set_access_cookie(response, access_token)
    set_refresh_cookie(response, refresh_token)


def clear_auth_cookies(response: Response):
    options = cookie_options()
    response.delete_cookie(ACCESS_COOKIE, **options)
    response.delete_cookie(REFRESH_COOKIE, **options)
