"""create absence workflow tables

Revision ID: 20261019_0001
Revises: None
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


user_role_enum = sa.Enum("admin", "teacher", "student", name="user_role")
absence_role_enum = sa.Enum("student", "teacher", name="absence_role")
absence_status_enum = sa.Enum("pending", "approved", "rejected", name="absence_status")
notification_event_enum = sa.Enum(
    "absence_submitted",
    "substitute_assigned",
    "substitute_unavailable",
    "substitute_reassigned",
    name="notification_event",
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", user_role_enum, nullable=False),
        sa.Column("is_disabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("push_handle", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"], unique=False)

    op.create_table(
        "classes",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("hod_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "class_enrollments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("class_id", "student_id", name="uq_class_enrollment"),
    )
    op.create_index("ix_class_enrollments_class_id", "class_enrollments", ["class_id"], unique=False)
    op.create_index("ix_class_enrollments_student_id", "class_enrollments", ["student_id"], unique=False)

    op.create_table(
        "schedule_entries",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("day", sa.String(length=16), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=False),
        sa.Column("substitute_teacher_id", sa.String(length=36), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_schedule_entries_class_id", "schedule_entries", ["class_id"], unique=False)
    op.create_index("ix_schedule_entries_teacher_id", "schedule_entries", ["teacher_id"], unique=False)

    op.create_table(
        "absences",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("person_id", sa.String(length=36), nullable=False),
        sa.Column("role", absence_role_enum, nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("absence_date", sa.Date(), nullable=False),
        sa.Column("duration", sa.Float(), nullable=False),
        sa.Column("evidence_ref", sa.String(length=500), nullable=True),
        sa.Column("status", absence_status_enum, nullable=False, server_default="pending"),
        sa.Column("reviewed_by_id", sa.String(length=36), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_absences_person_id", "absences", ["person_id"], unique=False)
    op.create_index("ix_absences_class_id", "absences", ["class_id"], unique=False)
    op.create_index("ix_absences_absence_date", "absences", ["absence_date"], unique=False)

    op.create_table(
        "substitute_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("absence_id", sa.String(length=36), nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("substitute_teacher_id", sa.String(length=36), nullable=False),
        sa.Column("weekday", sa.String(length=16), nullable=False),
        sa.Column("entry_ids", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_substitute_assignments_absence_id",
        "substitute_assignments",
        ["absence_id"],
        unique=True,
    )
    op.create_index(
        "ix_substitute_assignments_substitute_teacher_id",
        "substitute_assignments",
        ["substitute_teacher_id"],
        unique=False,
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("event_type", notification_event_enum, nullable=False),
        sa.Column("absence_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "event_type", "absence_id", name="uq_notification_per_event"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
    op.create_index("ix_notifications_absence_id", "notifications", ["absence_id"], unique=False)

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("actor_id", sa.String(length=36), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.String(length=100), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_activity_logs_action", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_index("ix_notifications_absence_id", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_substitute_assignments_substitute_teacher_id", table_name="substitute_assignments")
    op.drop_index("ix_substitute_assignments_absence_id", table_name="substitute_assignments")
    op.drop_table("substitute_assignments")
    op.drop_index("ix_absences_absence_date", table_name="absences")
    op.drop_index("ix_absences_class_id", table_name="absences")
    op.drop_index("ix_absences_person_id", table_name="absences")
    op.drop_table("absences")
    op.drop_index("ix_schedule_entries_teacher_id", table_name="schedule_entries")
    op.drop_index("ix_schedule_entries_class_id", table_name="schedule_entries")
    op.drop_table("schedule_entries")
    op.drop_index("ix_class_enrollments_student_id", table_name="class_enrollments")
    op.drop_index("ix_class_enrollments_class_id", table_name="class_enrollments")
    op.drop_table("class_enrollments")
    op.drop_table("classes")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    notification_event_enum.drop(bind, checkfirst=True)
    absence_status_enum.drop(bind, checkfirst=True)
    absence_role_enum.drop(bind, checkfirst=True)
    user_role_enum.drop(bind, checkfirst=True)
