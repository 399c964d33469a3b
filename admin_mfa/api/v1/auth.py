import uuid

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from admin_mfa.api.v1._helpers import (
    clear_session_cookies, set_mfa_cookie, set_session_cookies,
)
from admin_mfa.core.config import settings
from admin_mfa.core.db import get_db
from admin_mfa.core.errors import Unauthorized
from admin_mfa.core.security import decode_token
from admin_mfa.schemas.auth import AccessTokenOut, LoginIn, LoginOut, UserOut
from admin_mfa.schemas.common import Envelope
from admin_mfa.services import accounts, step_up
from admin_mfa.services.sessions import SessionIssuer, get_session_issuer

router = APIRouter(prefix="/admin", tags=["auth"])


@router.post("/login", response_model=Envelope[LoginOut])
async def login(
    payload: LoginIn,
    response: Response,
    db: AsyncSession = Depends(get_db),
    issuer: SessionIssuer = Depends(get_session_issuer),
):
    user = await accounts.authenticate(db, payload.email, payload.password)
    user_out = UserOut.model_validate(user)
    device_id = payload.device_id or str(uuid.uuid4())

    outcome = await step_up.after_primary_login(
        db, issuer, user_out.id, device_id, payload.remember_me
    )

    if outcome.mfa_required:
        # nada de cookies de sesión hasta que pase el segundo factor
        clear_session_cookies(response)
        set_mfa_cookie(response, outcome.mfa_token, outcome.mfa_expires_at)  # type: ignore[arg-type]
        return Envelope(data=LoginOut(mfa_required=True))

    credentials = outcome.credentials
    set_session_cookies(response, credentials)  # type: ignore[arg-type]
    return Envelope(data=LoginOut(
        token=credentials.access_token,  # type: ignore[union-attr]
        access_token=credentials.access_token,  # type: ignore[union-attr]
        user=user_out,
    ))


@router.post("/access-token", response_model=Envelope[AccessTokenOut])
async def access_token(
    request: Request,
    issuer: SessionIssuer = Depends(get_session_issuer),
):
    refresh = request.cookies.get(settings.REFRESH_COOKIE_NAME)
    if not refresh or decode_token(refresh, "refresh") is None:
        raise Unauthorized("Invalid refresh token")

    issued = await issuer.generate_access_token(refresh)
    return Envelope(data=AccessTokenOut(token=issued.token))
