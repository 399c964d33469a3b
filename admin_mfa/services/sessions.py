"""
Emisión de sesiones del host.

El núcleo MFA no genera tokens de sesión propios: pide un refresh token y lo
cambia por un access token a través de esta interfaz. `JWTSessionIssuer` es la
implementación por defecto (JWT firmados, sin estado en el servidor).
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal, Protocol

from jose import JWTError

from admin_mfa.core.config import settings
from admin_mfa.core.errors import SessionIssuanceError
from admin_mfa.core.security import decode_token, encode_token

RefreshKind = Literal["refresh", "session"]


@dataclass
class IssuedToken:
    token: str
    expires_at: datetime


class SessionIssuer(Protocol):
    async def generate_refresh_token(
        self, user_id: str, device_id: str, kind: RefreshKind
    ) -> IssuedToken: ...

    async def generate_access_token(self, refresh_token: str) -> IssuedToken: ...


class JWTSessionIssuer:
    def _lifetime(self, kind: RefreshKind) -> timedelta:
        if kind == "refresh":
            return timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        if kind == "session":
            return timedelta(hours=settings.SESSION_TOKEN_EXPIRE_HOURS)
        raise SessionIssuanceError(f"Unknown refresh token kind: {kind}")

    async def generate_refresh_token(
        self, user_id: str, device_id: str, kind: RefreshKind
    ) -> IssuedToken:
        lifetime = self._lifetime(kind)
        try:
            token, expires_at = encode_token(
                user_id,
                "refresh",
                lifetime,
                extra={"deviceId": device_id, "kind": kind, "sid": uuid.uuid4().hex},
            )
        except JWTError as exc:
            raise SessionIssuanceError() from exc
        return IssuedToken(token=token, expires_at=expires_at)

    async def generate_access_token(self, refresh_token: str) -> IssuedToken:
        payload = decode_token(refresh_token, "refresh")
        if payload is None:
            raise SessionIssuanceError("Invalid refresh token")
        try:
            token, expires_at = encode_token(
                payload["sub"],
                "access",
                timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
                extra={"sid": payload.get("sid")},
            )
        except JWTError as exc:
            raise SessionIssuanceError() from exc
        return IssuedToken(token=token, expires_at=expires_at)


_issuer = JWTSessionIssuer()


def get_session_issuer() -> SessionIssuer:
    return _issuer
