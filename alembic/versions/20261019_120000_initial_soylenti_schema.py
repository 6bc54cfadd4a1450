"""Initial Soylenti schema: players, aliases, rumours, mentions, admin users

Revision ID: 5a1e7c2b9d40
Revises:
Create Date: 2026-10-19 12:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# Revision identifiers, used by Alembic.
revision: str = "5a1e7c2b9d40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("normalized_name", sa.String(length=255), nullable=False),
        sa.Column("rumor_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("first_seen_at", sa.DateTime(), nullable=True),
        sa.Column("last_seen_at", sa.DateTime(), nullable=True),
        sa.Column("merged_into_id", sa.Integer(), nullable=True),
        sa.Column("retired_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["merged_into_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("normalized_name"),
        sa.CheckConstraint("rumor_count >= 0", name="ck_players_rumor_count_non_negative"),
    )
    op.create_index("idx_players_last_seen", "players", ["last_seen_at"], unique=False)
    op.create_index("idx_players_rumor_count", "players", ["rumor_count"], unique=False)

    op.create_table(
        "player_aliases",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("alias", sa.String(length=255), nullable=False),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("alias", name="uq_player_aliases_alias"),
    )
    op.create_index("idx_player_aliases_player", "player_aliases", ["player_id"], unique=False)

    op.create_table(
        "rumors",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("link", sa.String(length=1024), nullable=False),
        sa.Column("pub_date", sa.DateTime(), nullable=False),
        sa.Column("source", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("content_hash", sa.String(length=64), nullable=True),
        sa.Column("is_duplicate", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_hidden", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("link"),
    )
    op.create_index("idx_rumors_pub_date", "rumors", ["pub_date"], unique=False)
    op.create_index("idx_rumors_content_hash", "rumors", ["content_hash"], unique=False)

    op.create_table(
        "news_players",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("news_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="mentioned"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["news_id"], ["rumors.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("news_id", "player_id", name="uq_news_players_news_player"),
    )
    op.create_index("idx_news_players_player", "news_players", ["player_id"], unique=False)

    op.create_table(
        "admin_users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="admin"),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
    )
    op.create_index("idx_admin_users_active", "admin_users", ["is_active"], unique=False)

    op.create_table(
        "update_log",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("update_type", sa.String(length=50), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_update_log_type_date", "update_log", ["update_type", "created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("idx_update_log_type_date", table_name="update_log")
    op.drop_table("update_log")
    op.drop_index("idx_admin_users_active", table_name="admin_users")
    op.drop_table("admin_users")
    op.drop_index("idx_news_players_player", table_name="news_players")
    op.drop_table("news_players")
    op.drop_index("idx_rumors_content_hash", table_name="rumors")
    op.drop_index("idx_rumors_pub_date", table_name="rumors")
    op.drop_table("rumors")
    op.drop_index("idx_player_aliases_player", table_name="player_aliases")
    op.drop_table("player_aliases")
    op.drop_index("idx_players_rumor_count", table_name="players")
    op.drop_index("idx_players_last_seen", table_name="players")
    op.drop_table("players")
