"""Sets up the async SQLAlchemy engine and session factory for the record store."""

from typing import Any

import structlog
from sqlalchemy import event
from sqlalchemy.engine import Connection, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from github_volunteer_manager.store.models import Base

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

SQLITE_BUSY_TIMEOUT_SECONDS = 30
"""How long a SQLite writer waits on another writer before failing."""


def _configure_sqlite_transactions(engine: AsyncEngine) -> None:
    """Let SQLAlchemy own SQLite transaction boundaries.

    The sqlite3 driver's implicit BEGIN breaks SAVEPOINT handling. Disabling it
    and emitting BEGIN IMMEDIATE ourselves also makes concurrent writers queue
    on the busy timeout instead of failing on lock upgrade.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(connection: Connection) -> None:
        connection.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for the given database URL."""
    url = make_url(database_url)
    connect_args: dict[str, Any] = {}
    is_sqlite = url.get_backend_name() == "sqlite"
    if is_sqlite:
        connect_args["timeout"] = SQLITE_BUSY_TIMEOUT_SECONDS
    logger.debug("Creating database engine", backend=url.get_backend_name(), database=url.database)
    engine = create_async_engine(url, echo=echo, connect_args=connect_args)
    if is_sqlite:
        _configure_sqlite_transactions(engine)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory whose objects stay usable after commit."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create all record store tables that do not exist yet."""
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    logger.info("Initialized record store schema", tables=sorted(Base.metadata.tables))
