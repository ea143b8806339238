"""create exams, registrations and exam proctors

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None


exam_method_enum = sa.Enum("essay", "multiple_choices", name="exam_method")
exam_status_enum = sa.Enum("draft", "published", "in_progress", "completed", "cancelled", name="exam_status")
registration_status_enum = sa.Enum("pending", "approved", "rejected", "cancelled", name="registration_status")
proctor_role_enum = sa.Enum("main", "assistant", name="proctor_role")


def upgrade() -> None:
    op.create_table(
        "exams",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("subject_code", sa.String(length=20), sa.ForeignKey("subjects.code"), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("exam_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.SmallInteger(), nullable=False),
        sa.Column("max_students", sa.SmallInteger(), nullable=False, server_default="20"),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True),
        sa.Column("method", exam_method_enum, nullable=False),
        sa.Column("status", exam_status_enum, nullable=False, server_default="draft"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("end_time > start_time", name="ck_exams_time_order"),
    )
    op.create_index("ix_exams_subject_code", "exams", ["subject_code"])
    op.create_index("ix_exams_exam_date", "exams", ["exam_date"])
    op.create_index("ix_exams_room_id", "exams", ["room_id"])

    op.create_table(
        "registrations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("exam_id", sa.Integer(), sa.ForeignKey("exams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", registration_status_enum, nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("registered_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("exam_id", "student_id", name="uq_registrations_exam_student"),
    )
    op.create_index("ix_registrations_exam_id", "registrations", ["exam_id"])
    op.create_index("ix_registrations_student_id", "registrations", ["student_id"])

    op.create_table(
        "exam_proctors",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("exam_id", sa.Integer(), sa.ForeignKey("exams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("proctor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", proctor_role_enum, nullable=False, server_default="assistant"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("exam_id", "proctor_id", name="uq_exam_proctors_exam_proctor"),
    )
    op.create_index("ix_exam_proctors_exam_id", "exam_proctors", ["exam_id"])
    op.create_index("ix_exam_proctors_proctor_id", "exam_proctors", ["proctor_id"])


def downgrade() -> None:
    op.drop_index("ix_exam_proctors_proctor_id", table_name="exam_proctors")
    op.drop_index("ix_exam_proctors_exam_id", table_name="exam_proctors")
    op.drop_table("exam_proctors")
    op.drop_index("ix_registrations_student_id", table_name="registrations")
    op.drop_index("ix_registrations_exam_id", table_name="registrations")
    op.drop_table("registrations")
    op.drop_index("ix_exams_room_id", table_name="exams")
    op.drop_index("ix_exams_exam_date", table_name="exams")
    op.drop_index("ix_exams_subject_code", table_name="exams")
    op.drop_table("exams")
    bind = op.get_bind()
    for enum in (proctor_role_enum, registration_status_enum, exam_status_enum, exam_method_enum):
        enum.drop(bind, checkfirst=True)
