"""
Database configuration
"""
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import create_engine, Session
from core.config import get_settings

# Create engine lazily to allow test configuration to be applied
_engine = None


class DatabaseUnavailableError(RuntimeError):
    """Raised when a connection to the database cannot be established"""


def get_engine():
    """
    Get or create the database engine.
    This lazy initialization allows test settings to be applied properly.

    Raises:
        DatabaseUnavailableError: If no database is configured
    """
    global _engine
    if _engine is None:
        uri = get_settings().SQLALCHEMY_DATABASE_URI
        if not uri:
            raise DatabaseUnavailableError(
                "Database is not configured: set SQLALCHEMY_DATABASE_URI or DB_SERVER"
            )
        _engine = create_engine(uri, echo=False)
    return _engine

def reset_engine():
    """
    Reset the engine to None.
    This is useful for tests that need to switch between different settings.
    """
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


@contextmanager
def session_scope(engine=None) -> Iterator[Session]:
    """
    Open a session with a live connection for the duration of a run.

    The connection is established eagerly so that an unreachable database
    fails here, before any work is done. The session is closed on every
    exit path.

    Raises:
        DatabaseUnavailableError: If no database is configured or the
            connection cannot be opened
    """
    session = Session(engine if engine is not None else get_engine())
    try:
        try:
            session.connection()
        except SQLAlchemyError as e:
            raise DatabaseUnavailableError(
                f"Cannot connect to database: {e}"
            ) from e
        yield session
    finally:
        session.close()
