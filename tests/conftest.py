"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

from datetime import datetime
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from soylenti.db.models import ALIAS_SOURCE_CANONICAL, Base, Player, PlayerAlias, Rumor
from soylenti.feeds.base import RumorItem, RumorSource
from soylenti.players.aliases import normalize_name


@pytest.fixture
def test_engine():
    """
    Create a test database engine.

    Uses SQLite in-memory for fast tests that don't need
    PostgreSQL-specific features. StaticPool keeps the single in-memory
    database alive across connections (and TestClient worker threads).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(bind=test_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    """
    Create a database session for a test.

    Services commit on their own, so each test gets a fresh database
    instead of a rolled-back transaction.
    """
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_player(db_session):
    """Factory creating a committed player with its canonical alias row."""

    def _make(
        name: str,
        aliases: tuple[str, ...] = (),
        rumor_count: int = 0,
        first_seen_at: Optional[datetime] = None,
        last_seen_at: Optional[datetime] = None,
    ) -> Player:
        key = normalize_name(name)
        player = Player(
            name=name,
            normalized_name=key,
            rumor_count=rumor_count,
            first_seen_at=first_seen_at,
            last_seen_at=last_seen_at,
        )
        db_session.add(player)
        db_session.flush()
        db_session.add(PlayerAlias(player_id=player.id, alias=key, source=ALIAS_SOURCE_CANONICAL))
        for alias in aliases:
            db_session.add(PlayerAlias(player_id=player.id, alias=normalize_name(alias), source="manual"))
        db_session.commit()
        return player

    return _make


@pytest.fixture
def make_rumor(db_session):
    """Factory creating a committed rumour row."""
    counter = {"n": 0}

    def _make(
        title: str = "Rumour",
        pub_date: Optional[datetime] = None,
        link: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Rumor:
        counter["n"] += 1
        rumor = Rumor(
            title=title,
            link=link or f"https://example.com/rumor/{counter['n']}",
            pub_date=pub_date or datetime(2025, 1, 6, 10, 0),
            source=RumorSource.BETISWEB.value,
            description=description,
        )
        db_session.add(rumor)
        db_session.commit()
        return rumor

    return _make


def rumor_item(
    title: str,
    link: str,
    pub_date: datetime,
    source: RumorSource = RumorSource.BETISWEB,
    description: Optional[str] = None,
) -> RumorItem:
    return RumorItem(title=title, link=link, pub_date=pub_date, source=source, description=description)


@pytest.fixture
def item_factory():
    return rumor_item
