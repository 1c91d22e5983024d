"""Create users, players, options and audit_events tables.

Revision ID: a7c31e9f04d2
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "a7c31e9f04d2"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _has_table(table: str) -> bool:
    return sa.inspect(op.get_bind()).has_table(table)


def upgrade() -> None:
    if not _has_table("users"):
        op.create_table(
            "users",
            sa.Column("uid", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("nickname", sa.String(255), nullable=False, server_default=""),
            sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("avatar", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("password", sa.String(255), nullable=False),
            sa.Column("ip", sa.String(45), nullable=False, server_default=""),
            sa.Column("permission", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("last_sign_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column("register_at", sa.DateTime(timezone=False), nullable=False),
        )
        op.create_index("ix_users_ip", "users", ["ip"])

    if not _has_table("players"):
        op.create_table(
            "players",
            sa.Column("pid", sa.Integer(), primary_key=True),
            sa.Column("uid", sa.Integer(), sa.ForeignKey("users.uid", ondelete="CASCADE"), nullable=False),
            sa.Column("player_name", sa.String(64), nullable=False, unique=True),
            sa.Column("last_modified", sa.DateTime(timezone=False), nullable=False),
        )
        op.create_index("ix_players_uid", "players", ["uid"])

    if not _has_table("options"):
        op.create_table(
            "options",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("option_name", sa.String(64), nullable=False, unique=True),
            sa.Column("option_value", sa.Text(), nullable=False, server_default=""),
        )

    if not _has_table("audit_events"):
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("actor_uid", sa.Integer(), sa.ForeignKey("users.uid", ondelete="SET NULL"), nullable=True),
            sa.Column("actor_email", sa.String(320), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(64), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.Column("client_ip", sa.String(45), nullable=True),
        )
        op.create_index("ix_audit_events_action", "audit_events", ["action"])


def downgrade() -> None:
    for table in ("audit_events", "options", "players", "users"):
        if _has_table(table):
            op.drop_table(table)
