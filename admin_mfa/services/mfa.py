"""
Ciclo de vida del secreto TOTP de cada usuario.

    NONE -> PENDING -> ENABLED -> DISABLED

`mfa_pending_secrets` guarda el secreto mientras el usuario confirma el primer
código; al confirmar se mueve a `mfa_secrets` junto con los hashes de los
recovery codes. DISABLED se comporta igual que NONE: para volver a activar
hace falta un PENDING nuevo (el secreto siempre se rota).

Las altas (begin y confirm) leen la config global dentro de su misma
transacción: con MFA apagado no se crea ningún secreto.
"""
import logging
from datetime import datetime, timezone
from typing import Literal, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from admin_mfa.core.config import settings
from admin_mfa.core.db import WriteConflict, unit_of_work
from admin_mfa.core.errors import (
    AlreadyEnabled, InvalidCode, MfaGloballyDisabled, MfaNotEnabled, NoPendingEnrollment,
    StorageError,
)
from admin_mfa.core.security import generate_recovery_codes, generate_totp_secret, verify_totp
from admin_mfa.models.mfa import MfaPendingSecret, MfaSecret
from admin_mfa.services import mfa_config, recovery_codes

logger = logging.getLogger(__name__)

MfaStatus = Optional[Literal["full"]]


async def _find_pending(db: AsyncSession, user_id: str) -> MfaPendingSecret | None:
    res = await db.execute(
        select(MfaPendingSecret)
        .where(MfaPendingSecret.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def _find_secret(db: AsyncSession, user_id: str) -> MfaSecret | None:
    res = await db.execute(
        select(MfaSecret)
        .where(MfaSecret.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def begin_enrollment(db: AsyncSession, user_id: str) -> str:
    """Crea (o pisa) el secreto temporal y lo devuelve para armar el URI."""
    secret = generate_totp_secret()

    # dos begin concurrentes: el INSERT que pierde reintenta como UPDATE
    for _ in range(settings.MFA_CONSUME_RETRIES):
        try:
            async with unit_of_work(db):
                if not await mfa_config.is_enabled(db):
                    raise MfaGloballyDisabled()
                existing = await _find_secret(db, user_id)
                if existing is not None and existing.enabled:
                    raise AlreadyEnabled()

                pending = await _find_pending(db, user_id)
                if pending is not None:
                    pending.secret = secret
                    pending.created_at = datetime.now(timezone.utc)
                else:
                    db.add(MfaPendingSecret(user_id=user_id, secret=secret))
        except WriteConflict:
            continue

        logger.info("MFA enrollment started for user %s", user_id)
        return secret

    raise StorageError()


async def confirm_enrollment(db: AsyncSession, user_id: str, code: str) -> list[str]:
    """
    Valida el primer código contra el secreto temporal y lo promueve.

    Devuelve los recovery codes en texto plano: es la única vez que se pueden
    leer, en la base solo quedan los hashes.
    """
    async with unit_of_work(db):
        if not await mfa_config.is_enabled(db):
            raise MfaGloballyDisabled()
        pending = await _find_pending(db, user_id)
        if pending is None:
            raise NoPendingEnrollment()
        if not verify_totp(code, pending.secret):
            raise InvalidCode()

        codes = generate_recovery_codes()
        hashes = await recovery_codes.hash_codes(codes)

        record = await _find_secret(db, user_id)
        if record is not None:
            record.secret = pending.secret
            record.enabled = True
            record.recovery_codes = hashes
        else:
            db.add(MfaSecret(
                user_id=user_id,
                secret=pending.secret,
                enabled=True,
                recovery_codes=hashes,
            ))
        await db.delete(pending)

    logger.info("MFA enabled for user %s", user_id)
    return codes


async def cancel_enrollment(db: AsyncSession, user_id: str) -> None:
    async with unit_of_work(db):
        pending = await _find_pending(db, user_id)
        if pending is None:
            raise NoPendingEnrollment()
        await db.delete(pending)
    logger.info("MFA enrollment cancelled for user %s", user_id)


async def discard_enrollment(db: AsyncSession, user_id: str) -> bool:
    """Como cancel_enrollment pero sin error si no había nada pendiente."""
    try:
        await cancel_enrollment(db, user_id)
    except NoPendingEnrollment:
        return False
    return True


async def verify_code(db: AsyncSession, user_id: str, code: str) -> bool:
    """Primero TOTP contra el secreto activo; si no, recovery code (se consume)."""
    if not code:
        return False

    async with unit_of_work(db):
        record = await _find_secret(db, user_id)
        if record is None or not record.enabled:
            return False
        secret = record.secret

    if verify_totp(code, secret):
        return True
    return await recovery_codes.validate_and_consume(db, user_id, code)


async def disable(db: AsyncSession, user_id: str, code: str) -> None:
    if await status(db, user_id) is None:
        raise MfaNotEnabled()
    if not await verify_code(db, user_id, code):
        raise InvalidCode()

    async with unit_of_work(db):
        record = await _find_secret(db, user_id)
        if record is None or not record.enabled:
            raise MfaNotEnabled()
        # la fila queda (historial); los recovery codes ya no sirven
        record.enabled = False
        record.recovery_codes = []

    logger.info("MFA disabled for user %s", user_id)


async def status(db: AsyncSession, user_id: str) -> MfaStatus:
    async with unit_of_work(db):
        record = await _find_secret(db, user_id)
        if record is not None and record.enabled:
            return "full"
        return None
