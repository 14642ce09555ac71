"""PRFlow — Async SQLAlchemy session and engine."""
import logging
from collections.abc import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm.exc import StaleDataError

from prflow.config import get_settings
from prflow.core.exceptions import ConflictError, PersistenceError

logger = logging.getLogger(__name__)

settings = get_settings()

engine = create_async_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    echo=settings.DEBUG,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency: yield async DB session.
    Anything left uncommitted when the request fails is rolled back.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def commit_or_raise(db: AsyncSession) -> None:
    """
    Commit the current unit of work.
    A stale version counter becomes ConflictError, any other database failure
    becomes PersistenceError. Either way the session is rolled back first.
    """
    try:
        await db.commit()
    except StaleDataError as exc:
        await db.rollback()
        logger.warning("Concurrent modification detected: %s", exc)
        raise ConflictError("The request was modified by someone else. Reload and try again.") from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Commit failed: %s", exc, exc_info=True)
        raise PersistenceError("The operation could not be saved") from exc
