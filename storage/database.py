"""
Storage - Database Engine and Sessions.

============================================================
RESPONSIBILITY
============================================================
Manages database connections and sessions.

- Creates the SQLAlchemy engine (PostgreSQL or SQLite)
- Provides the session factory
- Provides explicit transaction boundaries
- Creates tables at startup

============================================================
TRANSACTIONS
============================================================
Every engine operation runs inside transaction_scope():
commit on success, rollback on ANY exception. Engine errors
pass through unchanged, stale versioned writes surface as
StaleRecordError, other database failures as PersistenceError.

============================================================
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool

from core.config import HouseRulesConfig
from core.exceptions import HouseRulesException, PersistenceError
from storage.models.base import Base
from storage.repositories.exceptions import RepositoryException, StaleRecordError

logger = logging.getLogger(__name__)


# =============================================================
# DATABASE ENGINE
# =============================================================

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def _redact(url: str) -> str:
    return url.split("@")[-1]


def create_database_engine(
    database_url: str,
    pool_size: int = 10,
    echo: bool = False,
) -> Engine:
    """
    Create a SQLAlchemy engine.

    Args:
        database_url: SQLAlchemy URL
        pool_size: Number of connections to keep in pool
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    logger.info(f"Creating database engine for: {_redact(database_url)}")

    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)
    else:
        engine = create_engine(
            database_url,
            pool_size=pool_size,
            max_overflow=pool_size * 2,
            pool_recycle=1800,
            pool_pre_ping=True,
            echo=echo,
        )

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        logger.debug("Database connection established")

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Build a session factory bound to the engine."""
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


def init_database(config: Optional[HouseRulesConfig] = None) -> sessionmaker:
    """
    Configure the process-wide engine and session factory.

    Creates missing tables. Must be called at process startup.
    """
    global _engine, _SessionFactory

    config = config or HouseRulesConfig.from_env()
    _engine = create_database_engine(
        config.database_url,
        pool_size=config.pool_size,
        echo=config.db_echo,
    )
    _SessionFactory = create_session_factory(_engine)

    verify_database_connection(_engine)
    create_all_tables(_engine)

    return _SessionFactory


def get_session_factory() -> sessionmaker:
    """Get the process-wide session factory."""
    if _SessionFactory is None:
        init_database()
    return _SessionFactory


# =============================================================
# SESSION MANAGEMENT
# =============================================================

@contextmanager
def transaction_scope(
    session_factory: Optional[sessionmaker] = None,
) -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs.
    Rolls back on ANY exception.

    Usage:
        with transaction_scope(factory) as session:
            repo = EventRepository(session)
            repo.create_event(...)
            # Commits automatically at end
    """
    factory = session_factory or get_session_factory()
    session = factory()
    try:
        yield session
        session.commit()
    except (HouseRulesException, RepositoryException):
        session.rollback()
        raise
    except StaleDataError as e:
        logger.debug(f"Stale versioned write, rolling back: {e}")
        session.rollback()
        raise StaleRecordError(
            repository_name="transaction_scope",
            operation="commit",
            original_error=str(e),
        ) from e
    except SQLAlchemyError as e:
        logger.error(f"Database transaction failed, rolling back: {e}")
        session.rollback()
        raise PersistenceError(f"Transaction failed: {e}", cause=e) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================
# DATABASE INITIALIZATION
# =============================================================

def verify_database_connection(engine: Engine) -> bool:
    """
    Verify database connection is working.

    Raises:
        PersistenceError if connection fails
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection verified successfully")
            return True
    except OperationalError as e:
        logger.error(f"Database connection failed: {e}")
        raise PersistenceError(f"Cannot connect to database: {e}", cause=e) from e


def create_all_tables(engine: Engine) -> None:
    """
    Create all tables defined in ORM models.

    Raises:
        PersistenceError if table creation fails
    """
    # Register models with Base
    from storage.models import events, groups  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")
        raise PersistenceError(f"Table creation failed: {e}", cause=e) from e


__all__ = [
    "create_database_engine",
    "create_session_factory",
    "init_database",
    "get_session_factory",
    "transaction_scope",
    "verify_database_connection",
    "create_all_tables",
]
