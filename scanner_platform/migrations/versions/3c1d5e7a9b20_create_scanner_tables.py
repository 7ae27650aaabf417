"""create catalogue, scan job and question tables

Revision ID: 3c1d5e7a9b20
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3c1d5e7a9b20"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    table_names = inspector.get_table_names()

    if "exams" not in table_names:
        op.create_table(
            "exams",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("name", sa.String(length=255), nullable=False, unique=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )

    if "courses" not in table_names:
        op.create_table(
            "courses",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("exam_id", sa.String(length=36), sa.ForeignKey("exams.id"), nullable=False, index=True),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )

    if "slots" not in table_names:
        op.create_table(
            "slots",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("course_id", sa.String(length=36), sa.ForeignKey("courses.id"), nullable=False, index=True),
            sa.Column("slot_name", sa.String(length=128), nullable=False),
        )

    if "parts" not in table_names:
        op.create_table(
            "parts",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("course_id", sa.String(length=36), sa.ForeignKey("courses.id"), nullable=False, index=True),
            sa.Column("slot_id", sa.String(length=36), sa.ForeignKey("slots.id"), nullable=True, index=True),
            sa.Column("part_name", sa.String(length=128), nullable=False),
        )

    if "scan_jobs" not in table_names:
        op.create_table(
            "scan_jobs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("filename", sa.String(length=255), nullable=True),
            sa.Column("source_path", sa.String(length=512), nullable=True),
            sa.Column("year", sa.Integer(), nullable=False),
            sa.Column("course_id", sa.String(length=36), sa.ForeignKey("courses.id"), nullable=False, index=True),
            sa.Column("slot_id", sa.String(length=36), nullable=True),
            sa.Column("part_id", sa.String(length=36), nullable=True),
            sa.Column("question_types", sa.JSON(), nullable=True),
            sa.Column("auto_save", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
            sa.Column("total_pages", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("processed_pages", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("total_questions", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("skipped_pages", sa.JSON(), nullable=True),
            sa.Column("failed_pages", sa.JSON(), nullable=True),
            sa.Column("status_message", sa.Text(), nullable=True),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        )

    if "questions" not in table_names:
        op.create_table(
            "questions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("question_type", sa.String(length=8), nullable=False, index=True),
            sa.Column("question_statement", sa.Text(), nullable=False),
            sa.Column("options", sa.JSON(), nullable=True),
            sa.Column("course_id", sa.String(length=36), sa.ForeignKey("courses.id"), nullable=True, index=True),
            sa.Column("year", sa.Integer(), nullable=False),
            sa.Column("slot", sa.String(length=128), nullable=True),
            sa.Column("part", sa.String(length=128), nullable=True),
            sa.Column("slot_id", sa.String(length=36), nullable=True),
            sa.Column("part_id", sa.String(length=36), nullable=True),
            sa.Column("correct_marks", sa.Float(), nullable=False, server_default="0"),
            sa.Column("incorrect_marks", sa.Float(), nullable=False, server_default="0"),
            sa.Column("skipped_marks", sa.Float(), nullable=False, server_default="0"),
            sa.Column("partial_marks", sa.Float(), nullable=False, server_default="0"),
            sa.Column("time_minutes", sa.Float(), nullable=False, server_default="0"),
            sa.Column("categorized", sa.Boolean(), nullable=False, server_default="0"),
            sa.Column("source_page", sa.Integer(), nullable=True),
            sa.Column("scan_job_id", sa.Integer(), sa.ForeignKey("scan_jobs.id"), nullable=True, index=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )


def downgrade():
    op.drop_table("questions")
    op.drop_table("scan_jobs")
    op.drop_table("parts")
    op.drop_table("slots")
    op.drop_table("courses")
    op.drop_table("exams")
