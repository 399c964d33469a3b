from pydantic import ConfigDict, EmailStr, Field

from admin_mfa.models.user import RoleEnum
from admin_mfa.schemas.common import CamelModel


class LoginIn(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    device_id: str | None = Field(default=None, max_length=128)
    remember_me: bool = False


class UserOut(CamelModel):
    id: str
    email: EmailStr
    full_name: str
    role: RoleEnum
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class LoginOut(CamelModel):
    mfa_required: bool = False
    token: str | None = None
    access_token: str | None = None
    user: UserOut | None = None


class AccessTokenOut(CamelModel):
    token: str
