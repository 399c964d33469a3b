"""
Recovery codes: hash al generarlos y consumo de un solo uso.

El consumo es read-validate-remove sobre la fila de `mfa_secrets`; la columna
`version` hace que dos requests concurrentes con el mismo código no puedan
ganar las dos (la segunda recibe WriteConflict, relee y ya no encuentra el hash).
"""
import logging

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from admin_mfa.core.config import settings
from admin_mfa.core.db import WriteConflict, unit_of_work
from admin_mfa.core.errors import StorageError
from admin_mfa.core.security import hash_recovery_code, verify_recovery_code
from admin_mfa.models.mfa import MfaSecret

logger = logging.getLogger(__name__)


def _hash_all(codes: list[str]) -> list[str]:
    return [hash_recovery_code(code) for code in codes]


def _match_all(code: str, hashes: list[str]) -> list[bool]:
    # se comparan todos los hashes, sin cortar en el primero que coincide
    return [verify_recovery_code(code, hashed) for hashed in hashes]


async def hash_codes(codes: list[str]) -> list[str]:
    # bcrypt es CPU: fuera del event loop
    return await run_in_threadpool(_hash_all, codes)


async def _load_secret(db: AsyncSession, user_id: str) -> MfaSecret | None:
    res = await db.execute(
        select(MfaSecret)
        .where(MfaSecret.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def validate_and_consume(db: AsyncSession, user_id: str, code: str) -> bool:
    code = code.strip()
    if not code:
        return False

    for attempt in range(1, settings.MFA_CONSUME_RETRIES + 1):
        try:
            async with unit_of_work(db):
                record = await _load_secret(db, user_id)
                if record is None or not record.enabled or not record.recovery_codes:
                    return False

                hashes = list(record.recovery_codes)
                matches = await run_in_threadpool(_match_all, code, hashes)
                if not any(matches):
                    return False

                index = matches.index(True)
                record.recovery_codes = hashes[:index] + hashes[index + 1:]
                remaining = len(record.recovery_codes)
        except WriteConflict:
            logger.warning(
                "Recovery code consumption conflict for user %s (attempt %d)", user_id, attempt
            )
            continue

        logger.info("Recovery code used by user %s, %d remaining", user_id, remaining)
        return True

    raise StorageError()

