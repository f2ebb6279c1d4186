"""
Module: sitemap_kernel.db.engine
Responsibility: Build the SQLAlchemy engine and session factory behind
    SqlBlobStore, create its table, and provide the transactional scope
    every blob store call runs in.
Architecture position: Kernel > DB.  May import from db/base.py and, inside
    create_tables only, from models/.

No module-level engine: each SqlBlobStore owns the factory it was given, so
two stores on two databases can live in one process.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from sitemap_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def engine_for_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
) -> Engine:
    """
    Create an engine for ``database_url``.

    SQLite gets a single shared connection (StaticPool, no same-thread
    check) so that an in-memory database is visible to every scheduler
    worker thread.  Other dialects (PostgreSQL via psycopg) use a sized
    QueuePool with pre-ping.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
        )
    logger.info("engine_created", extra={"dialect": engine.dialect.name})
    return engine


def session_factory_for(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


def create_tables(engine: Engine) -> None:
    """Create every table registered on Base.metadata (idempotent)."""
    from sitemap_kernel.db.base import Base
    import sitemap_kernel.models  # noqa: F401  (registers models)

    Base.metadata.create_all(engine)
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Commits on normal exit; rolls back and re-raises on exception.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()
