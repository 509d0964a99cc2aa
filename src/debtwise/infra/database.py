"""Database infrastructure: engine, schema and transactional sessions."""

from __future__ import annotations

from contextlib import AbstractContextManager, contextmanager
from typing import Callable, Iterator, Tuple

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from ..config import BaseConfig
from ..exceptions import TransactionError
from ..logging_config import get_logger

SessionFactory = Callable[[], AbstractContextManager[Session]]

logger = get_logger("infra.database")


def _install_sqlite_hooks(engine: Engine, pragmas: dict[str, str]) -> None:
    """Apply pragmas on connect and open every transaction with BEGIN IMMEDIATE.

    pysqlite defers BEGIN until the first DML statement, which would leave the
    reads of a read-then-write unit outside the transaction. Taking the write
    lock up front makes an overlapping unit wait on busy_timeout and then read
    the committed state, instead of failing on a stale snapshot.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # pragma: no cover - driver hook
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        for key, value in pragmas.items():
            cursor.execute(f"PRAGMA {key}={value}")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):  # pragma: no cover - driver hook
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(config: BaseConfig) -> Engine:
    """Create SQLModel engine from configuration."""
    engine = create_engine(config.DATABASE_URL, **config.sqlalchemy_engine_options())
    if engine.dialect.name == "sqlite":
        _install_sqlite_hooks(engine, dict(config.SQLITE_PRAGMAS))
    return engine


def init_database(engine: Engine) -> None:
    """Initialize database schema."""
    # Import all models to ensure they're registered
    from .. import models  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.debug("Schema initialized", extra={"url": str(engine.url)})


@contextmanager
def session_scope(engine: Engine) -> Iterator[Session]:
    """Provide a transactional scope around operations."""
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_session_factory(engine: Engine) -> SessionFactory:
    """Create a session factory whose sessions commit on success."""

    def factory() -> AbstractContextManager[Session]:
        return session_scope(engine)

    return factory


def bootstrap_database(config: BaseConfig | None = None) -> Tuple[Engine, SessionFactory]:
    """Convenience bootstrap for engine + session_factory with schema init.

    Used by the CLI, the app context and tests to ensure consistent engine
    options and session configuration. Returns (engine, session_factory).
    """

    cfg = config or BaseConfig()
    engine = create_db_engine(cfg)
    init_database(engine)
    return engine, create_session_factory(engine)


@contextmanager
def atomic(session_factory: SessionFactory, operation: str) -> Iterator[Session]:
    """Run a multi-table mutation as one all-or-nothing unit.

    Storage failures are rolled back by the session scope and re-raised as
    :class:`TransactionError`; domain errors propagate unchanged.
    """

    try:
        with session_factory() as session:
            yield session
    except SQLAlchemyError as exc:
        logger.error(
            "Transaction rolled back", extra={"operation": operation}, exc_info=True
        )
        raise TransactionError(f"{operation} failed and was rolled back: {exc}") from exc
