"""
Database module for Soylenti.

Provides SQLAlchemy ORM models and session management.

Usage:
    from soylenti.db import get_session, Player, Rumor

    with get_session() as session:
        players = session.query(Player).all()
"""

from soylenti.db.models import (
    AdminUser,
    Base,
    NewsPlayer,
    Player,
    PlayerAlias,
    Rumor,
    UpdateLog,
)
from soylenti.db.session import SessionLocal, get_db, get_engine, get_session

__all__ = [
    # Base
    "Base",
    # Models
    "Player",
    "PlayerAlias",
    "Rumor",
    "NewsPlayer",
    "AdminUser",
    "UpdateLog",
    # Session
    "get_session",
    "get_db",
    "get_engine",
    "SessionLocal",
]
