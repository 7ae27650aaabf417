"""add unsaved_questions to scan_jobs

Revision ID: 7d2e4f6a8c13
Revises: 3c1d5e7a9b20
Create Date: 2026-10-19 12:00:00.000000

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "7d2e4f6a8c13"
down_revision = "3c1d5e7a9b20"
branch_labels = None
depends_on = None


def _ensure_column(table_name: str, column: sa.Column) -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    existing = {col["name"] for col in inspector.get_columns(table_name)}
    if column.name not in existing:
        op.add_column(table_name, column)


def upgrade():
    _ensure_column("scan_jobs", sa.Column("unsaved_questions", sa.JSON(), nullable=True))


def downgrade():
    with op.batch_alter_table("scan_jobs") as batch_op:
        batch_op.drop_column("unsaved_questions")
