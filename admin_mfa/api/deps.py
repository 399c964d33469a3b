from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from admin_mfa.core.config import settings
from admin_mfa.core.db import get_db
from admin_mfa.core.errors import Forbidden, Unauthorized
from admin_mfa.core.security import decode_token
from admin_mfa.models.user import AdminUser, RoleEnum
from admin_mfa.services import accounts
from admin_mfa.services.step_up import read_assertion


bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> AdminUser:
    """Sesión primaria completa: access token en el header Authorization."""
    payload = decode_token(creds.credentials, "access") if creds else None
    if payload is None:
        raise Unauthorized()

    user = await accounts.get_user(db, payload["sub"])
    if not user or not user.is_active:
        raise Unauthorized()
    return user


# --- Role-based dependency ---
def require_roles(*roles: RoleEnum):
    async def _guard(user: AdminUser = Depends(get_current_user)) -> AdminUser:
        if user.role not in roles:
            raise Forbidden()
        return user
    return _guard


# --- assertion MFA pendiente ---
async def require_mfa_assertion(request: Request) -> str:
    """
    Guard de /mfa/verify: sin una assertion firmada y vigente en la cookie
    la request no llega al handler.
    """
    token = request.cookies.get(settings.MFA_COOKIE_NAME)
    read_assertion(token)
    return token  # type: ignore[return-value]
