from typing import Literal, Optional

from pydantic import Field

from admin_mfa.schemas.common import CamelModel


class EnableIn(CamelModel):
    enable: bool


class EnableOut(CamelModel):
    message: str
    uri: str | None = None
    secret: str | None = None
    qr: str | None = None   # data URI PNG


class CodeIn(CamelModel):
    code: str = Field(..., min_length=1, max_length=64)


class SetupOut(CamelModel):
    recovery_codes: list[str]


class StatusOut(CamelModel):
    status: Optional[Literal["full"]] = None


class VerifyOut(CamelModel):
    token: str
    access_token: str


class MfaConfigOut(CamelModel):
    enabled: bool
    enforce: bool
    issuer: str


class MfaConfigIn(CamelModel):
    enabled: bool | None = None
    enforce: bool | None = None
    issuer: str | None = Field(default=None, max_length=255)
