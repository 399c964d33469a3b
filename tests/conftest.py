"""
Fixtures compartidas: base SQLite (aiosqlite) por test, usuarios del panel y
un cliente httpx contra la app ASGI con `get_db` apuntando a esa base.
"""
import os
import time

os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

import pyotp
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from admin_mfa import models  # noqa: F401  (puebla Base.metadata)
from admin_mfa.core.db import Base, get_db
from admin_mfa.main import app
from admin_mfa.models.user import RoleEnum
from admin_mfa.services import accounts, mfa
from admin_mfa.services.mfa_config import update_config

ADMIN_PASSWORD = "s3cret-admin-pass"
EDITOR_PASSWORD = "s3cret-editor-pass"


@pytest_asyncio.fixture
async def engine(tmp_path):
    # archivo y no :memory: para que varias sesiones vean la misma base
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'mfa.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def admin_user(db):
    return await accounts.create_user(
        db, "admin@example.com", ADMIN_PASSWORD, role=RoleEnum.admin, full_name="Ada Admin"
    )


@pytest_asyncio.fixture
async def editor_user(db):
    return await accounts.create_user(
        db, "editor@example.com", EDITOR_PASSWORD, role=RoleEnum.editor, full_name="Ed Editor"
    )


@pytest_asyncio.fixture
async def mfa_on(db):
    """Config global con MFA habilitado."""
    return await update_config(db, {"enabled": True, "issuer": "Test Admin"})


async def enroll(db, user_id: str) -> tuple[str, list[str]]:
    """Alta completa de MFA; devuelve (secret, recovery codes)."""
    secret = await mfa.begin_enrollment(db, user_id)
    codes = await mfa.confirm_enrollment(db, user_id, pyotp.TOTP(secret).now())
    return secret, codes


@pytest_asyncio.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()


async def login(client: AsyncClient, email: str, password: str, **extra):
    return await client.post(
        "/admin/login", json={"email": email, "password": password, **extra}
    )


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def wrong_code(secret: str) -> str:
    """Un código de 6 dígitos que no es válido ahora (ni en la ventana)."""
    totp = pyotp.TOTP(secret)
    now = time.time()
    valid = {totp.at(now + delta) for delta in (-60, -30, 0, 30, 60)}
    return next(c for c in ("000000", "111111", "222222", "333333") if c not in valid)
