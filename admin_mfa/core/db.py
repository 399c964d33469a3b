# admin_mfa/core/db.py
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.orm.exc import StaleDataError

from admin_mfa.core.config import settings
from admin_mfa.core.errors import StorageError

logger = logging.getLogger(__name__)

engine = create_async_engine(settings.async_database_url, echo=False, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session


class WriteConflict(StorageError):
    """Otra request modificó (o creó) la misma fila entre la lectura y el commit."""


@asynccontextmanager
async def unit_of_work(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Commit al salir; ante cualquier error hace rollback para no dejar
    mutaciones parciales. Los errores de SQLAlchemy salen como StorageError;
    los conflictos de versión o de clave como WriteConflict, para que quien
    quiera reintentar pueda hacerlo.

    El rollback expira todas las instancias de la sesión, también las cargadas
    antes del bloque: después de un error de dominio no leer atributos ORM
    (en async el lazy-load revienta) sin un `db.refresh` previo.
    """
    try:
        yield db
        await db.commit()
    except (StaleDataError, IntegrityError) as exc:
        await db.rollback()
        raise WriteConflict() from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Record store failure")
        raise StorageError() from exc
    except BaseException:
        await db.rollback()
        raise
