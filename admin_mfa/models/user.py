import enum
import uuid
from sqlalchemy import String, Enum, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from admin_mfa.core.db import Base


class RoleEnum(str, enum.Enum):
    admin = "admin"
    editor = "editor"


class AdminUser(Base):
    """Usuario del panel (lo administra el host, acá solo se lee)."""
    __tablename__ = "admin_users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(255), default="")
    role: Mapped[RoleEnum] = mapped_column(Enum(RoleEnum), default=RoleEnum.editor)
    hashed_password: Mapped[str] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
