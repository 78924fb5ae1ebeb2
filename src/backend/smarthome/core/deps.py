"""Dependency injection utilities for FastAPI."""

from typing import Annotated, AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from smarthome.core.config import settings
from smarthome.services.broadcast import ConnectionManager

# Database engine and session factory
engine = create_async_engine(settings.database_url, echo=settings.debug)
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_connection_manager(request: Request) -> ConnectionManager | None:
    """Return the live-update connection manager attached at startup, if any."""
    return getattr(request.app.state, "connection_manager", None)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
LiveConnections = Annotated[ConnectionManager | None, Depends(get_connection_manager)]
