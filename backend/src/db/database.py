"""
Database connection and session management.

This module provides the SQLAlchemy engine factory and the Database object
that owns the engine and session factory for the lifetime of the application.
PostgreSQL is the production target; SQLite is supported for development and
tests.
"""

import sqlite3
from pathlib import Path
from typing import Generator, Optional

from dotenv import load_dotenv
from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from backend.src.config.settings import AppSettings, get_settings
from backend.src.utils.logging_config import get_logger


# Load environment variables from .env file
# Look for .env in backend directory (parent of src)
env_path = Path(__file__).parent.parent.parent / '.env'
if env_path.exists():
    load_dotenv(dotenv_path=env_path)


logger = get_logger("db")


def is_sqlite_memory(database_url: str) -> bool:
    """Check if a SQLite URL points at a private in-memory database."""
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def create_db_engine(
    database_url: str,
    pool_size: int = 20,
    max_overflow: int = 10,
    echo: bool = False,
) -> Engine:
    """
    Create a SQLAlchemy engine with backend-appropriate pool settings.

    Args:
        database_url: SQLAlchemy database URL
        pool_size: Maximum connections in pool (PostgreSQL only)
        max_overflow: Additional connections beyond pool_size (PostgreSQL only)
        echo: Echo SQL statements

    Returns:
        Configured Engine
    """
    if database_url.startswith("sqlite"):
        # SQLite doesn't support pool_size, max_overflow, or pool_recycle
        if is_sqlite_memory(database_url):
            # All sessions share the one in-memory database
            return create_engine(
                database_url,
                connect_args={'check_same_thread': False},
                poolclass=StaticPool,
                echo=echo,
                future=True
            )
        # File-backed: one connection per session, writers serialize on the file lock
        return create_engine(
            database_url,
            connect_args={'check_same_thread': False},
            echo=echo,
            future=True
        )

    return create_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,    # Verify connections before checkout
        pool_recycle=3600,     # Recycle connections after 1 hour
        echo=echo,
        future=True
    )


@event.listens_for(Engine, "connect")
def enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    """
    Turn on foreign key enforcement for SQLite connections.

    SQLite ignores ON DELETE RESTRICT and dangling references unless the
    pragma is set per connection.
    """
    if isinstance(dbapi_conn, sqlite3.Connection):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class Database:
    """
    Owns the engine and session factory.

    Created once at application startup, held on ``app.state.database`` and
    disposed at shutdown. Nothing in the package creates an engine at import
    time.

    Usage:
        >>> database = Database.from_settings(get_settings())
        >>> database.init()
        >>> with database.session() as session:
        ...     session.execute(text("SELECT 1"))
        >>> database.dispose()
    """

    def __init__(
        self,
        database_url: str,
        pool_size: int = 20,
        max_overflow: int = 10,
        echo: bool = False,
    ):
        self.database_url = database_url
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.echo = echo
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @classmethod
    def from_settings(cls, settings: Optional[AppSettings] = None) -> "Database":
        """Build a Database from application settings."""
        settings = settings or get_settings()
        return cls(
            database_url=settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            echo=settings.db_echo,
        )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database is not initialized; call init() first")
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            raise RuntimeError("Database is not initialized; call init() first")
        return self._session_factory

    def init(self) -> None:
        """Create the engine and session factory (idempotent)."""
        if self._engine is not None:
            return

        self._engine = create_db_engine(
            self.database_url,
            pool_size=self.pool_size,
            max_overflow=self.max_overflow,
            echo=self.echo,
        )
        self._session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self._engine,
            future=True
        )
        logger.info(
            "Database engine initialized",
            extra={"dialect": self._engine.dialect.name}
        )

    def session(self) -> Session:
        """Open a new session bound to the engine."""
        return self.session_factory()

    def create_all(self) -> None:
        """
        Create all tables.

        This should only be called during local development or testing.
        For production, use Alembic migrations instead.
        """
        from backend.src.models import Base
        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        """Dispose of the engine and close all pooled connections."""
        if self._engine is not None:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None


def get_database(request: Request) -> Database:
    """Dependency returning the Database held on the application state."""
    return request.app.state.database


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Dependency for FastAPI routes to get database session.

    Yields:
        Session: SQLAlchemy database session

    Usage:
        @router.get("/bookings")
        def list_bookings(db: Session = Depends(get_db)):
            ...
    """
    db = get_database(request).session()
    try:
        yield db
    finally:
        db.close()
