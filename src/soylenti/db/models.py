"""
SQLAlchemy ORM models for Soylenti.

This module defines all database tables and their relationships.
The schema is designed around a canonical player registry: every player
mentioned in transfer news has one record, and every spelling of their
name (including the canonical one) lives in player_aliases.

Key design decisions:
- player_aliases is the single key space for name lookups. A player's
  normalized_name is always present as its 'canonical' alias row, so one
  unique constraint guarantees no two players claim the same string.
- Players are never deleted. A merge retires the duplicate by pointing
  merged_into_id at the surviving record.
- Rumours are persisted so mentions (news_players) have something to
  reference and can be transferred during merges.
- news_players is unique per (news, player): a rumour counts once per player.

Tables:
- players: Canonical player records with mention counters
- player_aliases: Normalized name variants for matching
- rumors: Persisted transfer rumours from the feeds
- news_players: Mention associations between rumours and players
- admin_users: Operator accounts for the admin API
- update_log: Audit trail for merges and sync runs
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# =============================================================================
# Constants
# =============================================================================

# Where an alias row came from
ALIAS_SOURCE_CANONICAL = "canonical"  # The player's own normalized_name
ALIAS_SOURCE_AUTO = "auto"  # Added automatically (suffix match)
ALIAS_SOURCE_MANUAL = "manual"  # Added by an operator
ALIAS_SOURCE_MERGE = "merge"  # Inherited from a merged duplicate

ADMIN_ROLES = ("admin", "editor", "user")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Player Models
# =============================================================================

class Player(Base):
    """
    Canonical player record.

    Created the first time a previously unseen name is attached to a rumour.
    rumor_count is the number of distinct rumours linked to the player
    through news_players; first_seen_at/last_seen_at bracket their
    publication dates.

    A retired player (merged_into_id set) keeps its row for history but owns
    no aliases and no mentions, and can never take part in another merge.
    """
    __tablename__ = "players"

    id: Mapped[int] = mapped_column(primary_key=True)

    # Name as first seen (original casing, used for display)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Optional operator-chosen display name ("Isco" instead of "Francisco Alarcon")
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Lookup key, always mirrored by a 'canonical' row in player_aliases
    normalized_name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    rumor_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    first_seen_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_seen_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Merge bookkeeping
    merged_into_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("players.id"), nullable=True
    )
    retired_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Metadata
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    aliases: Mapped[list["PlayerAlias"]] = relationship(back_populates="player")
    mentions: Mapped[list["NewsPlayer"]] = relationship(back_populates="player")

    __table_args__ = (
        Index("idx_players_last_seen", "last_seen_at"),
        Index("idx_players_rumor_count", "rumor_count"),
        CheckConstraint("rumor_count >= 0", name="ck_players_rumor_count_non_negative"),
    )

    @property
    def is_retired(self) -> bool:
        return self.merged_into_id is not None

    @property
    def alias_names(self) -> set[str]:
        """Alias set excluding the canonical key."""
        return {
            alias.alias
            for alias in self.aliases
            if alias.alias != self.normalized_name
        }

    def __repr__(self) -> str:
        return f"<Player(id={self.id}, name='{self.name}', rumors={self.rumor_count})>"


class PlayerAlias(Base):
    """
    Normalized name variants mapping to a canonical player.

    Rumour text refers to players in many ways:
    - Full name: "Giovani Lo Celso"
    - Surname only: "Lo Celso"
    - Nickname: "Isco" for "Francisco Roman Alarcon"

    Each variant is stored normalized (see players/aliases.py) and is unique
    across the whole table, so it can only ever resolve to one player.
    """
    __tablename__ = "player_aliases"

    id: Mapped[int] = mapped_column(primary_key=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False)

    alias: Mapped[str] = mapped_column(String(255), nullable=False)

    # 'canonical', 'auto', 'manual' or 'merge'
    source: Mapped[str] = mapped_column(String(20), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    player: Mapped["Player"] = relationship(back_populates="aliases")

    __table_args__ = (
        UniqueConstraint("alias", name="uq_player_aliases_alias"),
        Index("idx_player_aliases_player", "player_id"),
    )

    def __repr__(self) -> str:
        return f"<PlayerAlias(alias='{self.alias}', player_id={self.player_id}, source='{self.source}')>"


# =============================================================================
# Rumour Models
# =============================================================================

class Rumor(Base):
    """
    A transfer rumour persisted from one of the feeds.

    The link is the identity of a rumour: the same link from two feeds is
    the same story. content_hash supports near-duplicate detection across
    different links (see services/dedup.py).
    """
    __tablename__ = "rumors"

    id: Mapped[int] = mapped_column(primary_key=True)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str] = mapped_column(String(1024), nullable=False, unique=True)
    pub_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    content_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_duplicate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    mentions: Mapped[list["NewsPlayer"]] = relationship(back_populates="rumor")

    __table_args__ = (
        Index("idx_rumors_pub_date", "pub_date"),
        Index("idx_rumors_content_hash", "content_hash"),
    )

    def __repr__(self) -> str:
        return f"<Rumor(id={self.id}, source='{self.source}', title='{self.title[:40]}')>"


class NewsPlayer(Base):
    """
    Mention association between a rumour and a player.

    Owned by the player side: merges move these rows from the duplicate to
    the primary record.
    """
    __tablename__ = "news_players"

    id: Mapped[int] = mapped_column(primary_key=True)
    news_id: Mapped[int] = mapped_column(ForeignKey("rumors.id", ondelete="CASCADE"), nullable=False)
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False)

    # Always 'mentioned' for automatic matches; kept for manual links
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="mentioned")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    rumor: Mapped["Rumor"] = relationship(back_populates="mentions")
    player: Mapped["Player"] = relationship(back_populates="mentions")

    __table_args__ = (
        UniqueConstraint("news_id", "player_id", name="uq_news_players_news_player"),
        Index("idx_news_players_player", "player_id"),
    )

    def __repr__(self) -> str:
        return f"<NewsPlayer(news_id={self.news_id}, player_id={self.player_id})>"


# =============================================================================
# Admin Models
# =============================================================================

class AdminUser(Base):
    """Operator account for the admin API."""

    __tablename__ = "admin_users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # 'admin', 'editor' or 'user'
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="admin",
        server_default="admin",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default="true",
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        Index("idx_admin_users_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<AdminUser(username='{self.username}', role='{self.role}', active={self.is_active})>"


# =============================================================================
# Audit Models
# =============================================================================

class UpdateLog(Base):
    """
    Audit log for data-changing operations.

    Records merges and sync runs for debugging and for reviewing what an
    operator did to the player registry.
    """
    __tablename__ = "update_log"

    id: Mapped[int] = mapped_column(primary_key=True)

    # 'player_merge', 'rumor_sync', 'rumor_count_repair'
    update_type: Mapped[str] = mapped_column(String(50), nullable=False)

    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_update_log_type_date", "update_type", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<UpdateLog(type='{self.update_type}', success={self.success})>"
