"""
Step-up: de sesión a medias (password OK) a sesión completa.

    PRIMARY_AUTHENTICATED -> MFA_PENDING -> FULLY_AUTHENTICATED

Si el usuario tiene MFA activo, el login primario no emite credenciales: se
firma una assertion corta (MFA_ASSERTION_EXPIRE_MINUTES) con userId, deviceId y
rememberMe que viaja en una cookie. `complete_verification` la cambia por
refresh + access token una vez validado el código.

No hay lista de revocación: la assertion deja de servir porque la cookie se
borra al verificar y porque vence sola a los pocos minutos.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from admin_mfa.core.config import settings
from admin_mfa.core.errors import ExpiredOrInvalidAssertion, InvalidCode
from admin_mfa.core.security import decode_token, encode_token
from admin_mfa.services import mfa
from admin_mfa.services.sessions import SessionIssuer

logger = logging.getLogger(__name__)

ASSERTION_TYPE = "mfa"


@dataclass
class PendingAssertion:
    user_id: str
    device_id: str
    remember_me: bool


@dataclass
class SessionCredentials:
    access_token: str
    access_expires_at: datetime
    refresh_token: str
    refresh_expires_at: datetime
    remember_me: bool


@dataclass
class LoginOutcome:
    credentials: SessionCredentials | None = None
    mfa_token: str | None = None
    mfa_expires_at: datetime | None = None

    @property
    def mfa_required(self) -> bool:
        return self.mfa_token is not None


def mint_assertion(user_id: str, device_id: str, remember_me: bool) -> tuple[str, datetime]:
    return encode_token(
        user_id,
        ASSERTION_TYPE,
        timedelta(minutes=settings.MFA_ASSERTION_EXPIRE_MINUTES),
        extra={"deviceId": device_id, "rememberMe": bool(remember_me), "jti": uuid.uuid4().hex},
    )


def read_assertion(token: str | None) -> PendingAssertion:
    payload = decode_token(token or "", ASSERTION_TYPE)
    if payload is None:
        raise ExpiredOrInvalidAssertion()
    device_id = payload.get("deviceId")
    if not isinstance(device_id, str) or not device_id:
        raise ExpiredOrInvalidAssertion()
    return PendingAssertion(
        user_id=payload["sub"],
        device_id=device_id,
        remember_me=bool(payload.get("rememberMe", False)),
    )


async def issue_credentials(
    issuer: SessionIssuer, user_id: str, device_id: str, remember_me: bool
) -> SessionCredentials:
    kind = "refresh" if remember_me else "session"
    refresh = await issuer.generate_refresh_token(user_id, device_id, kind)
    access = await issuer.generate_access_token(refresh.token)
    return SessionCredentials(
        access_token=access.token,
        access_expires_at=access.expires_at,
        refresh_token=refresh.token,
        refresh_expires_at=refresh.expires_at,
        remember_me=remember_me,
    )


async def after_primary_login(
    db: AsyncSession,
    issuer: SessionIssuer,
    user_id: str,
    device_id: str,
    remember_me: bool,
) -> LoginOutcome:
    if await mfa.status(db, user_id) == "full":
        token, expires_at = mint_assertion(user_id, device_id, remember_me)
        logger.info("MFA required for user %s", user_id)
        return LoginOutcome(mfa_token=token, mfa_expires_at=expires_at)

    credentials = await issue_credentials(issuer, user_id, device_id, remember_me)
    return LoginOutcome(credentials=credentials)


async def complete_verification(
    db: AsyncSession, issuer: SessionIssuer, pending_token: str | None, code: str
) -> SessionCredentials:
    assertion = read_assertion(pending_token)

    if not await mfa.verify_code(db, assertion.user_id, code):
        logger.info("MFA verification failed for user %s", assertion.user_id)
        raise InvalidCode()

    credentials = await issue_credentials(
        issuer, assertion.user_id, assertion.device_id, assertion.remember_me
    )
    logger.info("MFA verified for user %s", assertion.user_id)
    return credentials
