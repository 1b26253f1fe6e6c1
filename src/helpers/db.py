"""Database connection helpers."""

from __future__ import annotations

from datetime import UTC, datetime
import os

from typing import TYPE_CHECKING, Any

from sqlalchemy import inspect
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from dotenv import load_dotenv


if TYPE_CHECKING:
    from collections.abc import Sequence

    from pydantic import BaseModel


# Load environment variables from .env file
load_dotenv()

Base = declarative_base()


def get_database_url() -> str:
    """Get the database URL from environment variables.

    DATABASE_URL wins when set; otherwise the URL is assembled from the
    POSTGRE_* variables.

    Returns:
        str: SQLAlchemy async database URL

    Raises:
        ValueError: If required environment variables are not set
    """
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    postgre_host = os.getenv("POSTGRE_HOST")
    if not postgre_host:
        msg = "POSTGRE_HOST is not set"
        raise ValueError(msg)

    postgre_port = os.getenv("POSTGRE_PORT", "5432")

    postgre_user = os.getenv("POSTGRE_USER")
    if not postgre_user:
        msg = "POSTGRE_USER is not set"
        raise ValueError(msg)

    postgre_password = os.getenv("POSTGRE_PASSWORD")
    if not postgre_password:
        msg = "POSTGRE_PASSWORD is not set"
        raise ValueError(msg)

    postgre_db = os.getenv("POSTGRE_DB")
    if not postgre_db:
        msg = "POSTGRE_DB is not set"
        raise ValueError(msg)

    # Use psycopg (version 3) as the async PostgreSQL driver
    return (
        "postgresql+psycopg://"
        f"{postgre_user}:{postgre_password}"
        f"@{postgre_host}:{postgre_port}"
        f"/{postgre_db}"
    )


def create_db_engine(
    database_url: str, *, echo: bool = False, **kwargs: Any
) -> AsyncEngine:
    """Create an async engine.

    Args:
        database_url: SQLAlchemy async URL (postgresql+psycopg or sqlite+aiosqlite)
        echo: Whether to log emitted SQL
        **kwargs: Additional create_async_engine kwargs (e.g. poolclass)

    Returns:
        AsyncEngine for the URL

    Example:
        ```python
        from src.helpers.db import create_db_engine, create_session_factory

        engine = create_db_engine("sqlite+aiosqlite:///restaking.db")
        sessions = create_session_factory(engine)
        async with sessions() as session:
            ...
        ```
    """
    return create_async_engine(database_url, echo=echo, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory whose objects survive commits."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    return value if value.tzinfo else value.replace(tzinfo=UTC)


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables registered on Base if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def _insert_for(session: AsyncSession, db_model_class: type[Any]) -> Any:
    """Pick the dialect-specific INSERT construct supporting ON CONFLICT."""
    bind = session.get_bind()
    if bind.dialect.name == "sqlite":
        return sqlite_insert(db_model_class)
    return pg_insert(db_model_class)


async def upsert_rows(
    session: AsyncSession,
    db_model_class: type[Any],
    rows: Sequence[dict[str, Any]],
) -> None:
    """Upsert rows using INSERT ... ON CONFLICT DO UPDATE on the primary key.

    Works on PostgreSQL and SQLite. Rows sharing a primary key within one
    call must be deduplicated by the caller. The session is committed.

    Args:
        session: Open async session
        db_model_class: The SQLAlchemy model class (e.g., DelegationDB)
        rows: Column-name to value mappings

    Raises:
        ValueError: If the database model class cannot be inspected
    """
    if not rows:
        return

    # Get primary key column names using SQLAlchemy inspection
    mapper = inspect(db_model_class)
    if not mapper:
        msg = f"Cannot inspect {db_model_class}"
        raise ValueError(msg)
    pk_columns = [col.name for col in mapper.primary_key]

    stmt = _insert_for(session, db_model_class).values(list(rows))
    update_dict = {
        col: stmt.excluded[col] for col in rows[0] if col not in pk_columns
    }
    stmt = stmt.on_conflict_do_update(index_elements=pk_columns, set_=update_dict)

    try:
        await session.execute(stmt)
        await session.commit()
    except Exception:
        await session.rollback()
        raise


async def upsert_models(
    session: AsyncSession,
    db_model_class: type[Any],
    pydantic_models: Sequence[BaseModel],
    extra_fields: dict[str, Any] | None = None,
) -> None:
    """Upsert Pydantic models whose fields map one-to-one onto columns.

    Args:
        session: Open async session
        db_model_class: The SQLAlchemy model class
        pydantic_models: Pydantic model instances with data to upsert
        extra_fields: Additional columns not in the Pydantic model
    """
    rows = [model.model_dump() for model in pydantic_models]
    if extra_fields:
        for row in rows:
            row.update(extra_fields)
    await upsert_rows(session, db_model_class, rows)


__all__ = [
    "Base",
    "as_utc",
    "create_db_engine",
    "create_session_factory",
    "create_tables",
    "get_database_url",
    "upsert_models",
    "upsert_rows",
]
