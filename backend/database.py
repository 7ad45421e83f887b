# database.py - Async database setup (optional backing store)
import os
from typing import Optional
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from contextlib import asynccontextmanager

# Database configuration. No URL means the board runs unpersisted.
DATABASE_URL = (
    os.getenv("DATABASE_URL")
    or os.getenv("NEON_DATABASE_URL")
    or os.getenv("POSTGRES_URL")
    or os.getenv("NEON_POSTGRES_URL")
    or None
)

SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"


def normalize_database_url(url: str) -> str:
    """Map hosted Postgres URLs onto the asyncpg driver."""
    if url.startswith("postgres://"):
        url = "postgresql+asyncpg://" + url[len("postgres://"):]
    elif url.startswith("postgresql://"):
        url = "postgresql+asyncpg://" + url[len("postgresql://"):]

    if url.startswith("postgresql+asyncpg://"):
        # asyncpg takes `ssl`, not libpq's `sslmode`
        parts = urlsplit(url)
        query = []
        for key, value in parse_qsl(parts.query):
            if key == "sslmode":
                query.append(("ssl", value))
            elif key != "channel_binding":
                query.append((key, value))
        url = urlunsplit(parts._replace(query=urlencode(query)))
    return url


def create_engine_for(url: str) -> AsyncEngine:
    """Create an async engine with connection pooling"""
    url = normalize_database_url(url)
    options = {"echo": SQL_ECHO, "future": True, "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        options.update(pool_size=5, max_overflow=0, pool_recycle=3600)
    return create_async_engine(url, **options)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False,
    )


def database_configured(url: Optional[str] = DATABASE_URL) -> bool:
    return bool(url and url.strip())


@asynccontextmanager
async def session_scope(session_maker: async_sessionmaker):
    """Context manager for database operations outside of the request cycle"""
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
