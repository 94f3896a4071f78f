import asyncio
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from conduit.config import settings
from conduit.errors import ServiceUnavailableError, StorageError

logger = logging.getLogger(__name__)

# Module-level engine variable allows tests to override with a test engine.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    """Request-scoped unit of work: commit on success, roll back on any error."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ---------------------------------------------------------------------------
# Bounded storage round trips
# ---------------------------------------------------------------------------

async def _bounded(awaitable, what: str):
    try:
        return await asyncio.wait_for(awaitable, timeout=settings.QUERY_TIMEOUT_SECONDS)
    except asyncio.TimeoutError as exc:
        logger.warning("%s exceeded %.1fs", what, settings.QUERY_TIMEOUT_SECONDS)
        raise ServiceUnavailableError() from exc
    except IntegrityError:
        # Left to the caller, which knows whether a duplicate is a conflict.
        raise
    except SQLAlchemyError as exc:
        logger.exception("%s failed", what)
        raise StorageError() from exc


async def execute(db: AsyncSession, statement, params: dict | None = None):
    """Execute *statement* with a timeout, classifying driver failures."""
    return await _bounded(db.execute(statement, params or {}), "query")


async def flush(db: AsyncSession) -> None:
    """Flush pending ORM inserts with the same timeout and classification."""
    await _bounded(db.flush(), "flush")
