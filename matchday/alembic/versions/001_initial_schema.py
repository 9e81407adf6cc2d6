"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the players, matches, match_attendance, player_stats and
notifications tables with their unique constraints and indexes.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("position", sa.String(), nullable=False, server_default="MID"),
        sa.Column("jersey_number", sa.Integer(), nullable=True, unique=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_players_name", "players", ["name"])
    op.create_index("idx_players_is_admin", "players", ["is_admin"])

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("match_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("players.id"), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="scheduled"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_matches_date", "matches", ["match_date"])
    op.create_index("idx_matches_status", "matches", ["status"])

    op.create_table(
        "match_attendance",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("match_id", sa.Integer(), sa.ForeignKey("matches.id"), nullable=False),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="out"),
        sa.Column("marked_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("match_id", "player_id", name="uq_match_attendance_match_player"),
        sa.CheckConstraint("status IN ('in', 'out', 'maybe')", name="ck_match_attendance_status"),
    )
    op.create_index("idx_match_attendance_player", "match_attendance", ["player_id"])
    op.create_index("idx_match_attendance_marked_at", "match_attendance", ["marked_at"])

    op.create_table(
        "player_stats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("match_id", sa.Integer(), sa.ForeignKey("matches.id"), nullable=False),
        sa.Column("goals", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("assists", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("yellow_cards", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("red_cards", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("minutes_played", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("player_id", "match_id", name="uq_player_stats_player_match"),
    )
    op.create_index("idx_player_stats_match", "player_stats", ["match_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("match_id", sa.Integer(), sa.ForeignKey("matches.id"), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("match_id", "type", name="uq_notifications_match_type"),
    )

    op.create_table(
        "admin_bootstrap",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("id = 1", name="ck_admin_bootstrap_singleton"),
    )


def downgrade() -> None:
    op.drop_table("admin_bootstrap")
    op.drop_table("notifications")
    op.drop_index("idx_player_stats_match", table_name="player_stats")
    op.drop_table("player_stats")
    op.drop_index("idx_match_attendance_marked_at", table_name="match_attendance")
    op.drop_index("idx_match_attendance_player", table_name="match_attendance")
    op.drop_table("match_attendance")
    op.drop_index("idx_matches_status", table_name="matches")
    op.drop_index("idx_matches_date", table_name="matches")
    op.drop_table("matches")
    op.drop_index("idx_players_is_admin", table_name="players")
    op.drop_index("idx_players_name", table_name="players")
    op.drop_table("players")
