"""
Database session management for Soylenti.

Provides the SQLAlchemy engine and session factory. The engine is created
on first use rather than at import time, so importing the models or the
web app never opens a connection. Every service receives its Session as an
explicit argument; nothing in the core reaches for a global client.

Usage:
    # As a context manager (recommended for scripts)
    from soylenti.db import get_session

    with get_session() as session:
        players = session.query(Player).all()
        # Commits automatically on exit, rolls back on exception

    # As a dependency injection (for FastAPI)
    from soylenti.db.session import get_db

    @app.get("/players")
    def list_players(db: Session = Depends(get_db)):
        ...
"""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from soylenti.config import settings


def create_db_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create SQLAlchemy engine with connection pooling.

    The engine is configured with:
    - Connection pool for efficient reuse
    - Echo mode only when LOG_LEVEL=DEBUG
    - Pre-ping to verify connections before use (handles stale connections)
    """
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        # SQLite has no server-side pool to size
        return create_engine(url, echo=settings.log_level == "DEBUG")

    return create_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        echo=settings.log_level == "DEBUG",
    )


_engine: Optional[Engine] = None


def get_engine() -> Engine:
    """Get or create the shared engine instance."""
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


# Session factory - bound to the engine lazily in get_session()/get_db()
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
)


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Automatically commits on successful exit, rolls back on exception.
    This is the recommended way to use sessions in scripts and tasks.

    Raises:
        Any exception from the database operation (after rollback)
    """
    session = SessionLocal(bind=get_engine())
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency injection function for FastAPI.

    Use this with FastAPI's Depends() for request-scoped sessions.
    Tests replace it through app.dependency_overrides.
    """
    db = SessionLocal(bind=get_engine())
    try:
        yield db
    finally:
        db.close()
