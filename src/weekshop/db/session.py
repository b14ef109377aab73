"""Database session management for WeekShop."""
import json
import sqlite3
from contextlib import contextmanager
from typing import Generator, Optional
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.engine import Engine

from weekshop.config.settings import get_settings
from weekshop.utils.logger import get_logger


# Enforce foreign keys so location/product references behave like the remote service
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite connection."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _json_serializer(value) -> str:
    # Keep non-ASCII aliases searchable with LIKE
    return json.dumps(value, ensure_ascii=False)


def build_engine(url: Optional[str] = None, echo: Optional[bool] = None, **kwargs) -> Engine:
    """Create an engine for the given URL (defaults from settings)."""
    settings = get_settings()
    return create_engine(
        url or settings.DB_URL,
        echo=settings.DB_ECHO if echo is None else echo,
        json_serializer=_json_serializer,
        **kwargs
    )


_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def get_engine() -> Engine:
    """Get the lazily created application engine."""
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


def get_session() -> Session:
    """Get a new database session."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=get_engine(),
        )
    return _session_factory()


class TransactionManager:
    """Commits the work of one store call as a unit, or none of it."""

    def __init__(self, session: Session):
        self.session = session
        self.logger = get_logger(self.__class__.__name__)

    @contextmanager
    def transaction(self, action: str) -> Generator[Session, None, None]:
        """
        Run one store call in a transaction on the shared session.

        Rows must be converted to domain values inside the block; the
        session is reused by the next call.

        Args:
            action: Store call name, logged when the work is rolled back

        Yields:
            Session: The database session
        """
        try:
            yield self.session
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            self.logger.debug("Transaction rolled back", action=action, error=type(e).__name__)
            raise
