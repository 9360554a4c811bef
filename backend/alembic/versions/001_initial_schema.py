"""Initial schema — users, events, members, pokes, share tokens, social graph.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(50), nullable=True, unique=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("avatar", sa.String(500), nullable=True),
        sa.Column("google_id", sa.String(100), nullable=True, unique=True),
        sa.Column("provider", sa.String(20), nullable=False, server_default="GOOGLE"),
        sa.Column("default_lat", sa.Float, nullable=True),
        sa.Column("default_lng", sa.Float, nullable=True),
        sa.Column("default_address", sa.String(500), nullable=True),
        sa.Column("default_location_name", sa.String(200), nullable=True),
        sa.Column("default_travel_mode", sa.String(20), nullable=True),
        sa.Column("needs_setup", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_users_user_id", "users", ["user_id"])

    op.create_table(
        "events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("owner_id", sa.String(100), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("meeting_point_lat", sa.Float, nullable=True),
        sa.Column("meeting_point_lng", sa.Float, nullable=True),
        sa.Column("meeting_point_name", sa.String(200), nullable=True),
        sa.Column("meeting_point_address", sa.String(500), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="upcoming"),
        sa.Column("use_meet_half", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_events_owner_id", "events", ["owner_id"])
    op.create_index("ix_events_start_time", "events", ["start_time"])
    op.create_index("ix_events_status", "events", ["status"])

    op.create_table(
        "members",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer, sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(100), nullable=True),
        sa.Column("nickname", sa.String(100), nullable=True),
        sa.Column("lat", sa.Float, nullable=True),
        sa.Column("lng", sa.Float, nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("travel_mode", sa.String(20), nullable=False, server_default="driving"),
        sa.Column("share_location", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("arrival_time", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("event_id", "user_id", name="uq_members_event_user"),
    )
    op.create_index("ix_members_event_id", "members", ["event_id"])
    op.create_index("ix_members_user_id", "members", ["user_id"])

    op.create_table(
        "poke_records",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer, sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("from_member_id", sa.Integer, sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False),
        sa.Column("to_member_id", sa.Integer, sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_poke_records_pair", "poke_records",
        ["event_id", "from_member_id", "to_member_id"],
    )

    op.create_table(
        "share_tokens",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("event_id", sa.Integer, sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("data", sa.JSON, nullable=True),
        sa.Column("read", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "read"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])

    op.create_table(
        "friend_requests",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("from_user_id", sa.String(100), nullable=False),
        sa.Column("to_user_id", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        *_timestamps(),
    )
    op.create_index("ix_friend_requests_from_user_id", "friend_requests", ["from_user_id"])
    op.create_index("ix_friend_requests_to_user_id", "friend_requests", ["to_user_id"])

    op.create_table(
        "friends",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("friend_id", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "friend_id", name="uq_friends_pair"),
    )
    op.create_index("ix_friends_user_id", "friends", ["user_id"])

    op.create_table(
        "event_invitations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer, sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("from_user_id", sa.String(100), nullable=False),
        sa.Column("to_user_id", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        *_timestamps(),
        sa.UniqueConstraint("event_id", "to_user_id", name="uq_event_invitations_target"),
    )
    op.create_index("ix_event_invitations_to_user_id", "event_invitations", ["to_user_id"])


def downgrade() -> None:
    op.drop_table("event_invitations")
    op.drop_table("friends")
    op.drop_table("friend_requests")
    op.drop_table("notifications")
    op.drop_table("share_tokens")
    op.drop_table("poke_records")
    op.drop_table("members")
    op.drop_table("events")
    op.drop_table("users")
