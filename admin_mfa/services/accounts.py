# Login primario del host (email + password)
import logging

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from admin_mfa.core.db import unit_of_work
from admin_mfa.core.errors import Forbidden, Unauthorized
from admin_mfa.core.security import hash_password, verify_password
from admin_mfa.models.user import AdminUser, RoleEnum

logger = logging.getLogger(__name__)


async def get_user(db: AsyncSession, user_id: str) -> AdminUser | None:
    async with unit_of_work(db):
        return await db.get(AdminUser, user_id)


async def create_user(
    db: AsyncSession,
    email: str,
    password: str,
    role: RoleEnum = RoleEnum.editor,
    full_name: str = "",
) -> AdminUser:
    hashed = await run_in_threadpool(hash_password, password)
    user = AdminUser(
        email=email.lower(),
        full_name=full_name,
        role=role,
        hashed_password=hashed,
    )
    async with unit_of_work(db):
        db.add(user)
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> AdminUser:
    async with unit_of_work(db):
        res = await db.execute(select(AdminUser).where(AdminUser.email == email.lower()))
        user = res.scalar_one_or_none()

    if not user or not await run_in_threadpool(verify_password, password, user.hashed_password):
        logger.info("Failed primary login for %s", email.lower())
        raise Unauthorized("Invalid credentials")
    if not user.is_active:
        raise Forbidden("User is inactive")
    return user
