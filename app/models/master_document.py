import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.mixins import AuditMixin


def _new_document_id() -> str:
    return uuid.uuid4().hex


class MasterDocument(AuditMixin, Base):
    """
    Entry in a project's Master Document List.

    Link lists hold denormalized DocumentLink snapshots. Every edge is stored
    twice (once per endpoint) and both copies are written in one transaction.
    Rows are never physically deleted so other documents' snapshots stay valid.
    """
    __tablename__ = "master_document"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_document_id)
    project_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Numbering (immutable once assigned)
    document_number: Mapped[str] = mapped_column(String(120), nullable=False)
    project_code: Mapped[str] = mapped_column(String(50), nullable=False)
    discipline_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    discipline_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    sub_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    sequence_number: Mapped[str] = mapped_column(String(20), nullable=False)

    # Document info
    document_title: Mapped[str] = mapped_column(String(255), nullable=False)
    document_type: Mapped[str | None] = mapped_column(String(80), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(80), nullable=True)

    # Status tracking
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="DRAFT", index=True)
    current_revision: Mapped[str] = mapped_column(String(20), nullable=False, default="R0")

    # Dependencies
    predecessors: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    successors: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    related_documents: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Assignment
    assigned_to: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    assigned_to_names: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Deadlines
    due_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    actual_start_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    actual_completion_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    visibility: Mapped[str] = mapped_column(String(20), nullable=False, default="CLIENT_VISIBLE")
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="MEDIUM")
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Denormalized counters maintained by submission/comment/supply workflows
    submission_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    supply_item_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    work_item_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_comments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    open_comments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resolved_comments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    progress_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Soft delete
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("project_id", "document_number", name="uix_master_document_number"),
    )

    def __repr__(self) -> str:
        return f"<MasterDocument(number='{self.document_number}', status='{self.status}')>"
