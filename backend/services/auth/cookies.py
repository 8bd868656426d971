"""HTTP cookie helpers for credential transport."""

from __future__ import annotations

from typing import Literal

from fastapi import Request, Response

from core import settings

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"
ACCESS_COOKIE_PATH = "/"
# The refresh token is only ever needed by the auth endpoints.
REFRESH_COOKIE_PATH = "/api/v1/auth"
COOKIE_SAMESITE: Literal["lax", "strict", "none"] = "lax"


def cookies_secure() -> bool:
    return (
        settings.app_env.strip().lower() not in {"local", "test"}
        and not settings.allow_insecure_http_cookies
    )


def set_token_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    secure = cookies_secure()
    response.set_cookie(
        key=ACCESS_COOKIE,
        value=access_token,
        httponly=True,
        secure=secure,
        samesite=COOKIE_SAMESITE,
        max_age=settings.access_token_expire_minutes * 60,
        path=ACCESS_COOKIE_PATH,
    )
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=refresh_token,
        httponly=True,
        secure=secure,
        samesite=COOKIE_SAMESITE,
        max_age=settings.refresh_token_expire_minutes * 60,
        path=REFRESH_COOKIE_PATH,
    )


def clear_token_cookies(response: Response) -> None:
    secure = cookies_secure()
    response.delete_cookie(
        key=ACCESS_COOKIE,
        path=ACCESS_COOKIE_PATH,
        secure=secure,
        samesite=COOKIE_SAMESITE,
    )
    response.delete_cookie(
        key=REFRESH_COOKIE,
        path=REFRESH_COOKIE_PATH,
        secure=secure,
        samesite=COOKIE_SAMESITE,
    )


def read_refresh_token(request: Request, explicit: str | None = None) -> str | None:
    """Prefer a token sent in the body, fall back to the refresh cookie."""
    if explicit:
        return explicit
    return request.cookies.get(REFRESH_COOKIE)
