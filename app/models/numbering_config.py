from sqlalchemy import JSON, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.mixins import AuditMixin


class DocumentNumberingConfig(AuditMixin, Base):
    """
    One row per project. Owns the discipline catalog and every sequence
    counter used to mint document numbers for that project.
    """
    __tablename__ = "document_numbering_config"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    project_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Immutable prefix of every generated number, e.g. 'PRJ-001'
    project_code: Mapped[str] = mapped_column(String(50), nullable=False)
    separator: Mapped[str] = mapped_column(String(5), nullable=False, default="-")
    sequence_digits: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    # Ordered list of DisciplineCode payloads
    disciplines: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Counter key -> last issued value, e.g. {"01": 5, "01-A": 2}
    # Keys appear lazily on first use and are never removed.
    sequence_counters: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint("project_id", name="uix_numbering_config_project"),
    )

    def __repr__(self) -> str:
        return f"<DocumentNumberingConfig(project='{self.project_id}', code='{self.project_code}')>"
