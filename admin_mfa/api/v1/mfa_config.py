from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from admin_mfa.api.deps import require_roles
from admin_mfa.core.db import get_db
from admin_mfa.models.user import AdminUser, RoleEnum
from admin_mfa.schemas.common import Envelope
from admin_mfa.schemas.mfa import MfaConfigIn, MfaConfigOut
from admin_mfa.services import mfa_config

router = APIRouter(prefix="/mfa", tags=["mfa-config"])


@router.get("/config", response_model=Envelope[MfaConfigOut])
async def get_config(
    _: AdminUser = Depends(require_roles(RoleEnum.admin)),
    db: AsyncSession = Depends(get_db),
):
    config = await mfa_config.get_config(db)
    return Envelope(data=MfaConfigOut(**mfa_config.as_dict(config)))


@router.put("/config", response_model=Envelope[MfaConfigOut])
async def update_config(
    body: MfaConfigIn,
    _: AdminUser = Depends(require_roles(RoleEnum.admin)),
    db: AsyncSession = Depends(get_db),
):
    config = await mfa_config.update_config(db, body.model_dump(exclude_none=True))
    return Envelope(data=MfaConfigOut(**mfa_config.as_dict(config)))
