"""
Module: fulfillment_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  Single point of database connection
    configuration for the kernel.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from services/, selectors/, domain/, or outer layers (except
    create_tables/drop_tables which import models so metadata is complete).

Invariants enforced:
    - PostgreSQL sessions run at READ COMMITTED.  Compare-and-set UPDATE
      statements re-evaluate their WHERE clause after waiting on a row lock,
      which is what makes them safe under concurrent writers.
    - SQLite (file databases) is supported for local runs and the test
      suite.  Connections may cross threads and wait on a busy timeout
      instead of failing immediately when another writer holds the lock.
    - session_scope() commits on success and rolls back on any exception.

Failure modes:
    - RuntimeError if get_engine/get_session_factory is called
      before init_engine_from_url().
    - OperationalError ("database is locked") on SQLite if a writer holds
      the database longer than the busy timeout.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from fulfillment_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the process-wide engine and session factory.

    A second call disposes the previous engine first.  The pool arguments
    apply to PostgreSQL only; SQLite file databases use SQLAlchemy's
    default pool with a busy timeout so concurrent writers queue up
    instead of failing.

    Args:
        database_url: postgresql://... or sqlite:///path/to/file.db
        echo: Log every SQL statement.
    """
    global _engine, _SessionFactory

    reset_engine()

    dialect = make_url(database_url).get_backend_name()

    if dialect == "sqlite":
        _engine = create_engine(
            database_url,
            echo=echo,
            connect_args={
                "check_same_thread": False,
                "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
            },
        )
    else:
        _engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": dialect,
            "pool_size": pool_size if dialect != "sqlite" else None,
            "echo": echo,
        },
    )

    return _engine


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """
    Session factory bound to the current engine.

    The FulfillmentEngine opens one session per operation from it, and
    background tasks open their own on the worker thread.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    One unit of work: commit on normal exit, roll back and re-raise on error.

    The session is always closed.  Objects loaded inside stay usable after
    the commit because the factory does not expire on commit.

    Usage:
        with session_scope(factory) as session:
            OrderService(session).create_order(...)
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.debug("unit_of_work_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every fulfillment table that does not exist yet."""
    from fulfillment_kernel.db.base import Base
    import fulfillment_kernel.models  # noqa: F401  registers all tables

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    """Drop every fulfillment table.  Test suites only."""
    from fulfillment_kernel.db.base import Base
    import fulfillment_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the pool and forget the engine and its session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None
    _SessionFactory = None


atexit.register(reset_engine)
