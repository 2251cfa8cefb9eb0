"""create lessons, bookings, invoices, installments, group sessions and event outbox

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "a1b2c3d4e5f6"
down_revision = None
branch_labels = None
depends_on = None


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(name=name, create_type=False)


def _timestamps():
    return [
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def _meeting_columns():
    return [
        sa.Column("meeting_join_url", sa.String(1024), nullable=True),
        sa.Column("meeting_host_url", sa.String(2048), nullable=True),
        sa.Column("meeting_id", sa.String(64), nullable=True),
        sa.Column("provider_meeting_id", sa.String(64), nullable=True),
    ]


def upgrade() -> None:
    op.execute("CREATE TYPE lesson_type AS ENUM ('tutoring', 'bag_review', 'skills', 'group')")
    op.execute("CREATE TYPE booking_status AS ENUM "
               "('pending', 'accepted', 'scheduled', 'completed', 'cancelled')")
    op.execute("CREATE TYPE payment_method AS ENUM ('paypal', 'bank_transfer')")
    op.execute("CREATE TYPE invoice_status AS ENUM ('pending', 'paid', 'rejected')")
    op.execute("CREATE TYPE installment_status AS ENUM ('pending', 'paid', 'rejected')")
    op.execute("CREATE TYPE session_status AS ENUM ('pending', 'active', 'completed')")
    op.execute("CREATE TYPE booking_event_type AS ENUM ("
               "'booking_accepted', 'booking_scheduled', 'booking_completed', 'booking_cancelled', "
               "'session_unlocked', 'invoice_rejected', 'session_started', 'session_ended', "
               "'schedule_reminder', 'recording_available')")

    op.create_table(
        "lessons",
        sa.Column("teacher_id", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("lesson_type", _enum("lesson_type"), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_sessions", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_lessons_id"), "lessons", ["id"], unique=False)
    op.create_index(op.f("ix_lessons_teacher_id"), "lessons", ["teacher_id"], unique=False)
    op.create_index(op.f("ix_lessons_lesson_type"), "lessons", ["lesson_type"], unique=False)
    op.create_index(op.f("ix_lessons_is_active"), "lessons", ["is_active"], unique=False)

    op.create_table(
        "bookings",
        sa.Column("student_id", sa.UUID(), nullable=False),
        sa.Column("teacher_id", sa.UUID(), nullable=False),
        sa.Column("lesson_id", sa.UUID(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_method", _enum("payment_method"), nullable=False),
        sa.Column("status", _enum("booking_status"), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("recording_url", sa.String(1024), nullable=True),
        sa.Column("is_installment", sa.Boolean(), nullable=False),
        sa.Column("total_installments", sa.Integer(), nullable=True),
        sa.Column("total_sessions", sa.Integer(), nullable=True),
        sa.Column("sessions_per_installment", sa.Integer(), nullable=True),
        sa.Column("installment_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("initial_sessions_unlocked", sa.Integer(), nullable=False),
        sa.Column("paid_sessions", sa.Integer(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        *_meeting_columns(),
        *_timestamps(),
        sa.ForeignKeyConstraint(["lesson_id"], ["lessons.id"], ondelete="RESTRICT"),
        sa.CheckConstraint(
            "status <> 'scheduled' OR scheduled_at IS NOT NULL OR total_sessions IS NOT NULL",
            name="ck_bookings_scheduled_has_start",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bookings_id"), "bookings", ["id"], unique=False)
    op.create_index(op.f("ix_bookings_student_id"), "bookings", ["student_id"], unique=False)
    op.create_index(op.f("ix_bookings_teacher_id"), "bookings", ["teacher_id"], unique=False)
    op.create_index(op.f("ix_bookings_lesson_id"), "bookings", ["lesson_id"], unique=False)
    op.create_index(op.f("ix_bookings_status"), "bookings", ["status"], unique=False)
    op.create_index(op.f("ix_bookings_scheduled_at"), "bookings", ["scheduled_at"], unique=False)
    op.create_index(op.f("ix_bookings_meeting_id"), "bookings", ["meeting_id"], unique=False)
    op.create_index(
        op.f("ix_bookings_provider_meeting_id"), "bookings", ["provider_meeting_id"], unique=False
    )
    op.create_index("ix_bookings_teacher_status", "bookings", ["teacher_id", "status"], unique=False)
    op.create_index(
        "uq_bookings_active_student_lesson",
        "bookings",
        ["student_id", "lesson_id"],
        unique=True,
        postgresql_where=sa.text("status NOT IN ('completed', 'cancelled')"),
    )

    op.create_table(
        "course_installments",
        sa.Column("booking_id", sa.UUID(), nullable=False),
        sa.Column("installment_number", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("sessions_unlocked", sa.Integer(), nullable=False),
        sa.Column("status", _enum("installment_status"), nullable=False),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_course_installments_id"), "course_installments", ["id"], unique=False)
    op.create_index(op.f("ix_course_installments_booking_id"), "course_installments", ["booking_id"], unique=False)
    op.create_index(op.f("ix_course_installments_status"), "course_installments", ["status"], unique=False)
    op.create_index(
        "uq_course_installments_live_number",
        "course_installments",
        ["booking_id", "installment_number"],
        unique=True,
        postgresql_where=sa.text("status <> 'rejected'"),
    )

    op.create_table(
        "invoices",
        sa.Column("booking_id", sa.UUID(), nullable=False),
        sa.Column("installment_id", sa.UUID(), nullable=True),
        sa.Column("lesson_id", sa.UUID(), nullable=False),
        sa.Column("student_id", sa.UUID(), nullable=False),
        sa.Column("teacher_id", sa.UUID(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_method", _enum("payment_method"), nullable=False),
        sa.Column("status", _enum("invoice_status"), nullable=False),
        sa.Column("is_initiating", sa.Boolean(), nullable=False),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("payment_receipt_url", sa.String(1024), nullable=True),
        sa.Column("external_payment_id", sa.String(255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["installment_id"], ["course_installments.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_payment_id"),
    )
    op.create_index(op.f("ix_invoices_id"), "invoices", ["id"], unique=False)
    op.create_index(op.f("ix_invoices_booking_id"), "invoices", ["booking_id"], unique=False)
    op.create_index(op.f("ix_invoices_installment_id"), "invoices", ["installment_id"], unique=False)
    op.create_index(op.f("ix_invoices_lesson_id"), "invoices", ["lesson_id"], unique=False)
    op.create_index(op.f("ix_invoices_student_id"), "invoices", ["student_id"], unique=False)
    op.create_index(op.f("ix_invoices_teacher_id"), "invoices", ["teacher_id"], unique=False)
    op.create_index(op.f("ix_invoices_status"), "invoices", ["status"], unique=False)

    op.create_table(
        "group_session_schedules",
        sa.Column("lesson_id", sa.UUID(), nullable=False),
        sa.Column("session_number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(), nullable=True),
        sa.Column("status", _enum("session_status"), nullable=False),
        sa.Column("recording_url", sa.String(1024), nullable=True),
        *_meeting_columns(),
        *_timestamps(),
        sa.ForeignKeyConstraint(["lesson_id"], ["lessons.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("lesson_id", "session_number", name="uq_group_session_number"),
    )
    op.create_index(op.f("ix_group_session_schedules_id"), "group_session_schedules", ["id"], unique=False)
    op.create_index(
        op.f("ix_group_session_schedules_lesson_id"), "group_session_schedules", ["lesson_id"], unique=False
    )
    op.create_index(
        op.f("ix_group_session_schedules_scheduled_at"), "group_session_schedules", ["scheduled_at"], unique=False
    )
    op.create_index(
        op.f("ix_group_session_schedules_status"), "group_session_schedules", ["status"], unique=False
    )
    op.create_index(
        op.f("ix_group_session_schedules_meeting_id"), "group_session_schedules", ["meeting_id"], unique=False
    )
    op.create_index(
        op.f("ix_group_session_schedules_provider_meeting_id"),
        "group_session_schedules",
        ["provider_meeting_id"],
        unique=False,
    )

    op.create_table(
        "booking_events",
        sa.Column("event_type", _enum("booking_event_type"), nullable=False),
        sa.Column("booking_id", sa.UUID(), nullable=True),
        sa.Column("lesson_id", sa.UUID(), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_booking_events_id"), "booking_events", ["id"], unique=False)
    op.create_index(op.f("ix_booking_events_event_type"), "booking_events", ["event_type"], unique=False)
    op.create_index(op.f("ix_booking_events_booking_id"), "booking_events", ["booking_id"], unique=False)
    op.create_index(op.f("ix_booking_events_lesson_id"), "booking_events", ["lesson_id"], unique=False)


def downgrade() -> None:
    op.drop_table("booking_events")
    op.drop_table("group_session_schedules")
    op.drop_table("invoices")
    op.drop_table("course_installments")
    op.drop_table("bookings")
    op.drop_table("lessons")
    for name in (
        "booking_event_type",
        "session_status",
        "installment_status",
        "invoice_status",
        "payment_method",
        "booking_status",
        "lesson_type",
    ):
        op.execute(f"DROP TYPE IF EXISTS {name}")
