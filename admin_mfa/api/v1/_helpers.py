from datetime import datetime, timezone

from fastapi import Response

from admin_mfa.core.config import settings
from admin_mfa.services.step_up import SessionCredentials

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _base_cookie() -> dict:
    return {
        "secure": settings.cookie_secure,
        "samesite": settings.COOKIE_SAMESITE,
        "domain": settings.COOKIE_DOMAIN,
    }


def _expire_cookie(response: Response, key: str, path: str = "/", httponly: bool = True) -> None:
    response.set_cookie(
        key, "", max_age=0, expires=EPOCH, path=path, httponly=httponly, **_base_cookie()
    )


def set_mfa_cookie(response: Response, token: str, expires_at: datetime) -> None:
    response.set_cookie(
        settings.MFA_COOKIE_NAME,
        token,
        httponly=True,
        max_age=settings.MFA_ASSERTION_EXPIRE_MINUTES * 60,
        expires=expires_at,
        **_base_cookie(),
    )


def clear_mfa_cookie(response: Response) -> None:
    _expire_cookie(response, settings.MFA_COOKIE_NAME)


def set_session_cookies(response: Response, credentials: SessionCredentials) -> None:
    refresh_opts: dict = {}
    if credentials.remember_me:
        refresh_opts["expires"] = credentials.refresh_expires_at
    # sin rememberMe: cookie de sesión del navegador
    response.set_cookie(
        settings.REFRESH_COOKIE_NAME,
        credentials.refresh_token,
        httponly=True,
        path=settings.REFRESH_COOKIE_PATH,
        **refresh_opts,
        **_base_cookie(),
    )
    # el cliente la lee para armar el header Bearer
    response.set_cookie(
        settings.ACCESS_COOKIE_NAME,
        credentials.access_token,
        httponly=False,
        **_base_cookie(),
    )


def clear_session_cookies(response: Response) -> None:
    _expire_cookie(response, settings.REFRESH_COOKIE_NAME, path=settings.REFRESH_COOKIE_PATH)
    _expire_cookie(response, settings.ACCESS_COOKIE_NAME, httponly=False)
