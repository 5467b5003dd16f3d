"""Async SQLAlchemy engine, session factory and declarative base."""
import os

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./groups.db")
DATABASE_ECHO = os.getenv("DATABASE_ECHO", "").lower() in ("1", "true", "yes")


class Base(DeclarativeBase):
    pass


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_from_url(url: str = DATABASE_URL, echo: bool = DATABASE_ECHO) -> AsyncEngine:
    engine = create_async_engine(url, echo=echo)
    if make_url(url).get_backend_name() == "sqlite":
        # SQLite ignores FOREIGN KEY clauses unless asked per connection.
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def init_models(engine: AsyncEngine) -> None:
    # Import registers the tables on Base.metadata.
    from app import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_models(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


engine = create_engine_from_url()
SessionLocal = create_session_factory(engine)
