"""create document numbering config and master document tables

Revision ID: b7c1d2e3f4a5
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "b7c1d2e3f4a5"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column(
            "created_by",
            sa.String(length=255),
            nullable=False,
            server_default=sa.text("'system@local'"),
        ),
        sa.Column(
            "last_changed_by",
            sa.String(length=255),
            nullable=False,
            server_default=sa.text("'system@local'"),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "document_numbering_config",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("project_id", sa.String(length=64), nullable=False),
        sa.Column("project_code", sa.String(length=50), nullable=False),
        sa.Column("separator", sa.String(length=5), nullable=False, server_default="-"),
        sa.Column("sequence_digits", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("disciplines", sa.JSON(), nullable=False),
        sa.Column("sequence_counters", sa.JSON(), nullable=False),
        *_audit_columns(),
        sa.UniqueConstraint("project_id", name="uix_numbering_config_project"),
    )

    op.create_table(
        "master_document",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("project_id", sa.String(length=64), nullable=False),
        sa.Column("document_number", sa.String(length=120), nullable=False),
        sa.Column("project_code", sa.String(length=50), nullable=False),
        sa.Column("discipline_code", sa.String(length=20), nullable=False),
        sa.Column("discipline_name", sa.String(length=120), nullable=True),
        sa.Column("sub_code", sa.String(length=20), nullable=True),
        sa.Column("sequence_number", sa.String(length=20), nullable=False),
        sa.Column("document_title", sa.String(length=255), nullable=False),
        sa.Column("document_type", sa.String(length=80), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=80), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="DRAFT"),
        sa.Column("current_revision", sa.String(length=20), nullable=False, server_default="R0"),
        sa.Column("predecessors", sa.JSON(), nullable=False),
        sa.Column("successors", sa.JSON(), nullable=False),
        sa.Column("related_documents", sa.JSON(), nullable=False),
        sa.Column("assigned_to", sa.JSON(), nullable=False),
        sa.Column("assigned_to_names", sa.JSON(), nullable=False),
        sa.Column("due_date", sa.DateTime(), nullable=True),
        sa.Column("actual_start_date", sa.DateTime(), nullable=True),
        sa.Column("actual_completion_date", sa.DateTime(), nullable=True),
        sa.Column("visibility", sa.String(length=20), nullable=False, server_default="CLIENT_VISIBLE"),
        sa.Column("priority", sa.String(length=10), nullable=False, server_default="MEDIUM"),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("submission_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("supply_item_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("work_item_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_comments", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("open_comments", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("resolved_comments", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("progress_percentage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_by", sa.String(length=255), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        *_audit_columns(),
        sa.UniqueConstraint("project_id", "document_number", name="uix_master_document_number"),
    )

    op.create_index(
        "ix_master_document_project_id",
        "master_document",
        ["project_id"],
        unique=False,
    )
    op.create_index(
        "ix_master_document_discipline_code",
        "master_document",
        ["discipline_code"],
        unique=False,
    )
    op.create_index(
        "ix_master_document_status",
        "master_document",
        ["status"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_master_document_status", table_name="master_document")
    op.drop_index("ix_master_document_discipline_code", table_name="master_document")
    op.drop_index("ix_master_document_project_id", table_name="master_document")
    op.drop_table("master_document")
    op.drop_table("document_numbering_config")
