"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates events, users, zones, incidents, incident_history, tasks and
messages, including the partial unique index that allows a single active
event.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- users (event FK added after events exists) ---
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("handle", sa.String(50), nullable=False, unique=True),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.Text, nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("event_id", sa.Uuid, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "role IN ('admin', 'aseo', 'guardia', 'medico', 'logistica', 'supervisor')",
            name="ck_users_role",
        ),
    )
    op.create_index("ix_users_event_id", "users", ["event_id"])

    # --- events ---
    op.create_table(
        "events",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("state", sa.String(20), nullable=False),
        sa.Column("created_by", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("state IN ('activo', 'terminado')", name="ck_events_state"),
        sa.CheckConstraint(
            "(state = 'terminado') = (ended_at IS NOT NULL)", name="ck_events_ended_at"
        ),
    )
    op.create_index("ix_events_created_at", "events", ["created_at"])
    op.create_index(
        "uq_events_single_active",
        "events",
        ["state"],
        unique=True,
        postgresql_where=sa.text("state = 'activo'"),
    )
    op.create_foreign_key(
        "fk_users_event", "users", "events", ["event_id"], ["id"], ondelete="SET NULL"
    )

    # --- zones ---
    op.create_table(
        "zones",
        sa.Column("id", sa.String(50), primary_key=True),
        sa.Column(
            "event_id",
            sa.Uuid,
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("name", sa.String(100), nullable=False),
    )

    # --- incidents ---
    op.create_table(
        "incidents",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "event_id", sa.Uuid, sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("zone_id", sa.String(50), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("state", sa.String(20), nullable=False),
        sa.Column("created_by", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assigned_to", sa.Uuid, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["zone_id", "event_id"],
            ["zones.id", "zones.event_id"],
            name="fk_incidents_zone",
        ),
        sa.CheckConstraint(
            "type IN ('derrame', 'seguridad', 'reabastecimiento', 'medico', 'otro')",
            name="ck_incidents_type",
        ),
        sa.CheckConstraint(
            "state IN ('pendiente', 'en_atencion', 'resuelta')", name="ck_incidents_state"
        ),
    )
    op.create_index("ix_incidents_event_id", "incidents", ["event_id"])
    op.create_index("ix_incidents_state", "incidents", ["state"])

    # --- incident_history ---
    op.create_table(
        "incident_history",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "incident_id",
            sa.Uuid,
            sa.ForeignKey("incidents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("from_state", sa.String(20), nullable=False),
        sa.Column("to_state", sa.String(20), nullable=False),
        sa.Column("actor_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_incident_history_incident_id", "incident_history", ["incident_id"])
    op.create_index("ix_incident_history_changed_at", "incident_history", ["changed_at"])

    # --- tasks ---
    op.create_table(
        "tasks",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "event_id", sa.Uuid, sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("zone_id", sa.String(50), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("state", sa.String(20), nullable=False),
        sa.Column("priority", sa.String(10), nullable=False),
        sa.Column("created_by", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assigned_to", sa.Uuid, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "state IN ('pendiente', 'en_progreso', 'completada')", name="ck_tasks_state"
        ),
        sa.CheckConstraint("priority IN ('alta', 'media', 'baja')", name="ck_tasks_priority"),
        sa.CheckConstraint(
            "(state = 'completada') = (completed_at IS NOT NULL)", name="ck_tasks_completed_at"
        ),
    )
    op.create_index("ix_tasks_event_id", "tasks", ["event_id"])
    op.create_index("ix_tasks_state", "tasks", ["state"])

    # --- messages ---
    op.create_table(
        "messages",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "event_id", sa.Uuid, sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "length(content) BETWEEN 1 AND 500", name="ck_messages_content_length"
        ),
    )
    op.create_index("ix_messages_event_id", "messages", ["event_id"])
    op.create_index("ix_messages_sent_at", "messages", ["sent_at"])


def downgrade() -> None:
    op.drop_table("messages")
    op.drop_table("tasks")
    op.drop_table("incident_history")
    op.drop_table("incidents")
    op.drop_table("zones")
    op.drop_constraint("fk_users_event", "users", type_="foreignkey")
    op.drop_table("events")
    op.drop_table("users")
