"""Database setup with SQLAlchemy async."""

from collections.abc import AsyncGenerator

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from reservesync.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

REQUIRED_TABLES = (
    "sheet_rows",
    "cache_entries",
    "ledger_entries",
    "ledger_usages",
    "companies",
    "plans",
    "company_visitors",
    "menu_ticket_types",
    "sync_runs",
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Create all tables (development helper; production uses migrations)."""
    # Register models on the metadata before create_all.
    import reservesync.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def check_db_ready() -> None:
    """
    Verify database connectivity and expected schema.

    Raises RuntimeError naming the tables that are missing.
    """
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))

        existing = await conn.run_sync(
            lambda sync_conn: set(inspect(sync_conn).get_table_names())
        )
        missing = [name for name in REQUIRED_TABLES if name not in existing]
        if missing:
            raise RuntimeError(
                f"Database schema is missing tables: {', '.join(missing)} "
                "(run database init or check migrations)."
            )
