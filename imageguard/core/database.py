"""
Database configuration and session management with dual database support.
Supports SQLite (default) and PostgreSQL (optional override).
"""
import logging
import os

from sqlalchemy import event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from imageguard.core.config import settings, PROJECT_ROOT
from imageguard.core.logging_config import _sanitize_data

logger = logging.getLogger(__name__)


def build_engine(database_url: str, query_timeout_seconds: int) -> Engine:
    """
    Create an engine for the given URL with a bounded query timeout.

    SQLite gets a busy timeout, PostgreSQL a server-side statement_timeout.
    """
    url = make_url(database_url)
    backend = url.get_backend_name()

    if backend == "sqlite":
        is_sqlite_memory = url.database in (None, "", ":memory:")
        engine_kwargs = {
            "echo": False,
            "connect_args": {
                "check_same_thread": False,
                "timeout": query_timeout_seconds,
            },
        }
        if is_sqlite_memory:
            engine_kwargs["poolclass"] = StaticPool

        sqlite_engine = create_engine(database_url, **engine_kwargs)

        @event.listens_for(sqlite_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            """Set SQLite-specific pragma settings."""
            cursor = dbapi_connection.cursor()
            if not is_sqlite_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

        logger.info(f"Configured SQLite engine ({'in-memory' if is_sqlite_memory else 'file-based'})")
        return sqlite_engine

    if backend in {"postgres", "postgresql"}:
        engine_kwargs = {
            "echo": False,
            "pool_pre_ping": True,
            "pool_size": 5,
            "max_overflow": 5,
            "pool_recycle": 3600,  # Recycle connections every hour
            "connect_args": {
                "options": f"-c statement_timeout={query_timeout_seconds * 1000}",
                "connect_timeout": query_timeout_seconds,
            },
        }
        logger.info("Configured PostgreSQL engine with connection pooling")
        return create_engine(database_url, **engine_kwargs)

    logger.warning(
        f"Using unsupported database type '{backend}'. "
        "Query timeouts are not enforced for this backend."
    )
    return create_engine(database_url, echo=False, pool_pre_ping=True)


database_url = settings.effective_database_url
database_type = settings.database_type

logger.info(f"Using {database_type} database: {_sanitize_data(database_url)}")

engine = build_engine(database_url, settings.db_query_timeout_seconds)


def create_db_and_tables():
    """Create database tables using Alembic migrations."""
    skip_db_init = os.getenv("SKIP_DB_INIT", "false").lower() in ("true", "1", "yes")
    if skip_db_init:
        logger.info("Skipping database initialization (SKIP_DB_INIT is set)")
        return

    try:
        logger.info("Running database migrations...")
        from alembic import command
        from alembic.config import Config

        alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
        alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
        alembic_cfg.set_main_option("sqlalchemy.url", database_url)

        command.upgrade(alembic_cfg, "head")
        logger.info("Database migrations completed successfully")

    except Exception as exc:
        logger.error(exc)
        # Fallback to SQLModel create_all
        try:
            logger.info("Falling back to SQLModel create_all...")
            import imageguard.models  # noqa: F401  (register tables on the metadata)
            SQLModel.metadata.create_all(engine)
            logger.info("Database tables created successfully (fallback)")
        except Exception as e:
            logger.error(e)
            raise


def get_session():
    """Get database session."""
    with Session(engine) as session:
        yield session


def get_session_context():
    """
    Get database session as context manager.

    Use this for CLI commands and other non-request contexts.

    Example:
        with get_session_context() as session:
            # use session
            pass
    """
    return Session(engine)


def init_db():
    """Initialize database tables."""
    logger.info("Initializing database...")
    create_db_and_tables()
    logger.info("Database initialization completed")
