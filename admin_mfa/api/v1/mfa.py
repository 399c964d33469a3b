from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from admin_mfa.api.deps import get_current_user, require_mfa_assertion
from admin_mfa.api.v1._helpers import clear_mfa_cookie, set_session_cookies
from admin_mfa.core.config import settings
from admin_mfa.core.db import get_db
from admin_mfa.core.security import qr_png_base64_from_text, totp_uri_from_secret
from admin_mfa.models.user import AdminUser
from admin_mfa.schemas.common import Envelope, MessageOut
from admin_mfa.schemas.mfa import (
    CodeIn, EnableIn, EnableOut, SetupOut, StatusOut, VerifyOut,
)
from admin_mfa.services import mfa, mfa_config, step_up
from admin_mfa.services.sessions import SessionIssuer, get_session_issuer

router = APIRouter(prefix="/mfa", tags=["mfa"])


@router.post("/enable", response_model=Envelope[EnableOut])
async def enable(
    body: EnableIn,
    current_user: AdminUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user_id, email = current_user.id, current_user.email

    # apagar el toggle antes de confirmar: se descarta el secreto temporal
    if not body.enable:
        await mfa.discard_enrollment(db, user_id)
        return Envelope(data=EnableOut(message="MFA status updated"))

    # con MFA apagado globalmente begin_enrollment levanta MfaGloballyDisabled
    secret = await mfa.begin_enrollment(db, user_id)
    config = await mfa_config.get_config(db)
    issuer = config.issuer or settings.MFA_DEFAULT_ISSUER
    uri = totp_uri_from_secret(secret, label=email, issuer=issuer)
    return Envelope(data=EnableOut(
        message="MFA status updated",
        uri=uri,
        secret=secret,
        qr=qr_png_base64_from_text(uri),
    ))


@router.post("/setup", response_model=Envelope[SetupOut])
async def setup(
    body: CodeIn,
    current_user: AdminUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    codes = await mfa.confirm_enrollment(db, current_user.id, body.code)
    return Envelope(data=SetupOut(recovery_codes=codes))


@router.post("/disable", response_model=Envelope[MessageOut])
async def disable(
    body: CodeIn,
    current_user: AdminUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await mfa.disable(db, current_user.id, body.code)
    return Envelope(data=MessageOut(message="MFA disabled"))


@router.get("/status", response_model=Envelope[StatusOut])
async def check_status(
    current_user: AdminUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return Envelope(data=StatusOut(status=await mfa.status(db, current_user.id)))


@router.post("/verify", response_model=Envelope[VerifyOut])
async def verify(
    body: CodeIn,
    response: Response,
    pending_token: str = Depends(require_mfa_assertion),
    db: AsyncSession = Depends(get_db),
    issuer: SessionIssuer = Depends(get_session_issuer),
):
    credentials = await step_up.complete_verification(db, issuer, pending_token, body.code)

    set_session_cookies(response, credentials)
    clear_mfa_cookie(response)
    return Envelope(data=VerifyOut(
        token=credentials.access_token,
        access_token=credentials.access_token,
    ))
