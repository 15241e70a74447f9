"""FastAPI dependency injection helpers."""

from sqlalchemy.ext.asyncio import AsyncSession

from cargolink.infrastructure.database import async_session_factory


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield one session per request; commit on success, rollback on error.

    Every write a request makes (status + history row, vehicle load +
    status, transfer decision + order + partnership counter) lands in a
    single commit.  COD submission commits earlier, while it still holds
    the driver's Redis lock.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
