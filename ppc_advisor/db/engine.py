"""
Database access: one AsyncEngine per process, pinned to the service schema

- async_session: session factory handed to the stores and services
- check_database(): Postgres round trip shared by startup and /health
"""

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ppc_advisor.config import Settings, get_settings


def build_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(
        settings.DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        echo=settings.DB_ECHO,
        connect_args={
            "server_settings": {
                "search_path": settings.DB_SCHEMA,
                "application_name": settings.APP_NAME,
            },
        },
    )


engine = build_engine(get_settings())

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def check_database() -> str | None:
    """None when Postgres answers, otherwise the error text"""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        return str(e)
    return None
