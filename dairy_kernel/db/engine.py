"""
Process-wide engine and session factory.

``init_engine_from_url`` is called once by the CLI (or the scheduler
process) and everything else asks for sessions through ``get_session`` or
``get_session_factory``.  The test suite builds its own in-memory engine
and does not touch this module's state.

PostgreSQL is the production backend: ``SELECT ... FOR UPDATE`` on the
invoice counter and the ledger head relies on its row locks.  SQLite is
accepted for tests and single-operator installs; it ignores FOR UPDATE
and serialises writers with its database lock instead.

Sessions use ``expire_on_commit=False`` so result DTOs built after a
per-customer commit never trigger lazy reloads.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from dairy_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_IN_MEMORY_URLS = ("sqlite://", "sqlite+pysqlite://")


def _engine_options(database_url: str, pool_size: int, max_overflow: int, pool_pre_ping: bool) -> dict:
    if database_url.startswith("sqlite"):
        options: dict = {"connect_args": {"check_same_thread": False}}
        # one shared connection, or every session would see its own empty database
        if ":memory:" in database_url or database_url in _IN_MEMORY_URLS:
            options["poolclass"] = StaticPool
        return options
    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": pool_pre_ping,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 5,
    pool_pre_ping: bool = True,
) -> Engine:
    """Create the engine and session factory; a second call replaces both.

    Pool arguments apply to PostgreSQL only.
    """
    global _engine, _SessionFactory

    _engine = create_engine(
        database_url,
        echo=echo,
        **_engine_options(database_url, pool_size, max_overflow, pool_pre_ping),
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
    )
    return _engine


def _not_initialized() -> RuntimeError:
    return RuntimeError("Engine not initialized. Call init_engine_from_url() first.")


def get_engine() -> Engine:
    if _engine is None:
        raise _not_initialized()
    return _engine


def get_session() -> Session:
    """A new session from the process-wide factory.  Caller closes it."""
    return get_session_factory()()


def get_session_factory() -> sessionmaker[Session]:
    """The factory itself; the background scheduler opens one session per tick."""
    if _SessionFactory is None:
        raise _not_initialized()
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Commit on normal exit; roll back, log and re-raise on error.

    Usage:
        with session_scope() as session:
            session.add(product)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every table known to the ORM registry."""
    from dairy_kernel.db.base import Base
    from dairy_kernel.models import import_all_models

    import_all_models()
    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    from dairy_kernel.db.base import Base
    from dairy_kernel.models import import_all_models

    import_all_models()
    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
