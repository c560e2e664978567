"""
Database session configuration.

Pricing master data (rules, zones, promos) is read through these sessions and
promo redemptions write through them. PostgreSQL via asyncpg in deployment;
a `sqlite+aiosqlite` URL works for local runs, in which case the pool sizing
settings do not apply.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from backend.app.core.config import settings


def engine_options(database_url: str) -> dict:
    options = {"echo": settings.db_echo, "pool_pre_ping": True}
    if make_url(database_url).get_backend_name() == "sqlite":
        # Concurrent redemptions wait on the file lock instead of failing
        options["connect_args"] = {"timeout": 30}
    else:
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
    return options


engine = create_async_engine(settings.database_url, **engine_options(settings.database_url))

# Objects stay readable after commit; reservations capture what they need anyway
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db():
    """
    FastAPI dependency for database sessions.

    Yields an async session; anything left uncommitted is rolled back on close.
    """
    async with AsyncSessionLocal() as session:
        yield session
