from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from admin_mfa.core.db import Base

CONFIG_ROW_ID = 1


class MfaConfig(Base):
    __tablename__ = "mfa_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=CONFIG_ROW_ID)
    enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    enforce: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    issuer: Mapped[str] = mapped_column(String(255), default="", nullable=False)
