"""Database engine, session factory, and declarative base.

Only the wizard draft blobs live in the database; the ledger itself is a
workbook on disk (see services/ledger.py).
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from chiptrack.config import settings

engine = create_async_engine(settings.database_url, echo=False)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    pass


async def init_models(bind: AsyncEngine | None = None) -> None:
    """Create any missing tables."""
    import chiptrack.models  # noqa: F401  register mappers

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
