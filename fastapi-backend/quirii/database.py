from typing import AsyncGenerator
from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from .config import get_settings

DATABASE_URL = get_settings().database_url

engine_kwargs = {"echo": False, "future": True}
if DATABASE_URL.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}

    if (
        ":memory:" in DATABASE_URL
        or "mode=memory" in DATABASE_URL
        or DATABASE_URL == "sqlite+aiosqlite://"
    ):
        # In-memory DBs must share one connection or every session sees an empty DB.
        engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs["poolclass"] = NullPool
elif "asyncpg" in DATABASE_URL or "postgresql" in DATABASE_URL:
    engine_kwargs["poolclass"] = NullPool

engine = create_async_engine(DATABASE_URL, **engine_kwargs)

async_session_factory = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        yield session


async def init_db() -> None:
    # Postgres schemas are managed by Alembic (`alembic upgrade head`); only
    # SQLite dev/test databases are created directly from the metadata.
    if "postgres" in engine.dialect.name:
        return

    # Register the tables on the metadata before create_all.
    from . import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
