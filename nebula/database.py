"""Process-scoped database engine and session lifecycle."""
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from nebula.config import get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()

engine: Optional[Engine] = None
SessionLocal = sessionmaker(autocommit=False, autoflush=False)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(database_url: str) -> Engine:
    """Create an engine whose queries are bounded by the configured timeout."""
    settings = get_settings()
    timeout_ms = settings.db_statement_timeout_ms

    if database_url.startswith("sqlite"):
        # sqlite3 busy timeout is expressed in seconds
        connect_args = {"check_same_thread": False, "timeout": timeout_ms / 1000}
        pool_config = {}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            pool_config["poolclass"] = StaticPool
        return create_engine(
            database_url,
            echo=settings.db_echo,
            connect_args=connect_args,
            **pool_config
        )

    connect_args = {}
    if database_url.startswith("postgresql"):
        connect_args["options"] = f"-c statement_timeout={timeout_ms}"

    return create_engine(
        database_url,
        echo=settings.db_echo,
        connect_args=connect_args,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )


def create_tables(bind: Engine) -> None:
    import nebula.models  # noqa: F401  registers every table on Base.metadata

    Base.metadata.create_all(bind=bind)


def init_db(database_url: Optional[str] = None) -> Engine:
    """Create the shared engine and bind the session factory to it."""
    global engine

    if engine is not None:
        logger.warning("Database engine already initialized, skipping")
        return engine

    url = database_url or get_settings().database_url
    logger.info(f"Initializing database connection to: {url.split('@')[-1]}")

    engine = build_engine(url)
    SessionLocal.configure(bind=engine)
    create_tables(engine)

    logger.info("Database engine initialized")
    return engine


def close_db() -> None:
    global engine
    if engine is not None:
        logger.info("Closing database connections")
        engine.dispose()
        engine = None


def get_db() -> Generator[Session, None, None]:
    if engine is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
