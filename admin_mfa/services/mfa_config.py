"""
Configuración global de MFA (fila única en `mfa_config`).

Si `enabled` pasa de true a false se borran todos los secretos, pendientes y
activos, de todos los usuarios. Primero se commitea la config y después se
borra: un alta que arranque en el medio ya ve MFA apagado. El borrado es
best-effort: si falla se loguea y la config queda escrita igual.
"""
import logging
from typing import Any

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from admin_mfa.core.config import settings
from admin_mfa.core.db import WriteConflict, unit_of_work
from admin_mfa.core.errors import ConfigWriteError, StorageError
from admin_mfa.models.mfa import MfaPendingSecret, MfaSecret
from admin_mfa.models.mfa_config import CONFIG_ROW_ID, MfaConfig

logger = logging.getLogger(__name__)

CONFIG_FIELDS = ("enabled", "enforce", "issuer")


def default_config() -> dict[str, Any]:
    return {"enabled": False, "enforce": False, "issuer": settings.MFA_DEFAULT_ISSUER}


def as_dict(config: MfaConfig) -> dict[str, Any]:
    return {
        "enabled": bool(config.enabled),
        "enforce": bool(config.enforce),
        "issuer": config.issuer or "",
    }


async def _load(db: AsyncSession) -> MfaConfig | None:
    return await db.get(MfaConfig, CONFIG_ROW_ID, populate_existing=True)


async def get_config(db: AsyncSession) -> MfaConfig:
    """Devuelve la config; si todavía no existe la crea con los defaults."""
    try:
        async with unit_of_work(db):
            config = await _load(db)
            if config is None:
                config = MfaConfig(id=CONFIG_ROW_ID, **default_config())
                db.add(config)
        return config
    except WriteConflict:
        # otra request la creó primero
        async with unit_of_work(db):
            config = await _load(db)
        if config is None:
            raise StorageError()
        return config


async def is_enabled(db: AsyncSession) -> bool:
    """
    Lee el flag sin crear la fila (sin fila = apagado). No abre su propia
    unidad de trabajo: se puede llamar dentro de la transacción de quien escribe.
    """
    config = await _load(db)
    return config is not None and bool(config.enabled)


async def revoke_all(db: AsyncSession) -> dict[str, int]:
    """Borra todos los secretos MFA. No es transaccional entre tablas."""
    removed: dict[str, int] = {}
    for model in (MfaPendingSecret, MfaSecret):
        table = model.__tablename__
        try:
            async with unit_of_work(db):
                result = await db.execute(
                    delete(model).execution_options(synchronize_session=False)
                )
            removed[table] = result.rowcount or 0
        except StorageError:
            logger.exception("Error disabling MFA for all users (table %s)", table)
    logger.info("MFA revoked for all users: %s", removed)
    return removed


async def update_config(db: AsyncSession, data: dict[str, Any]) -> MfaConfig:
    changes = {key: value for key, value in data.items() if key in CONFIG_FIELDS}

    await get_config(db)

    try:
        async with unit_of_work(db):
            config = await _load(db)
            was_enabled = bool(config.enabled)
            for key, value in changes.items():
                setattr(config, key, value)
            snapshot = as_dict(config)
    except StorageError as exc:
        cause = exc.__cause__
        raise ConfigWriteError(str(cause) if cause else None) from exc

    logger.info("MFA config updated: %s", snapshot)

    if was_enabled and not snapshot["enabled"]:
        await revoke_all(db)
        # un rollback dentro de revoke_all expira la instancia
        await db.refresh(config)

    return config


async def ensure_default_config(db: AsyncSession) -> None:
    """Bootstrap: crea la fila de config si no existe."""
    await get_config(db)
