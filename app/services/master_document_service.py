from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import transaction_scope
from app.models.master_document import MasterDocument
from app.schemas.master_document import MasterDocumentCreate, MasterDocumentStatus
from app.services.document_errors import InvalidStatusTransitionError, NotFoundError
from app.services.document_link_service import DocumentLinkService
from app.services.document_numbering_service import (
    DocumentNumberingService,
    parse_document_number,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class MasterDocumentService:
    @staticmethod
    def create_master_document(
        db: Session,
        project_id: str,
        payload: MasterDocumentCreate,
        created_by: str,
    ) -> MasterDocument:
        """
        Register a document and mint its number in the same transaction.
        If the insert fails, the counter increment rolls back with it.
        """
        with transaction_scope(db):
            config = DocumentNumberingService.get_numbering_config(db, project_id)
            discipline_name = next(
                (
                    d.get("name")
                    for d in (config.disciplines or [])
                    if d.get("code") == payload.discipline_code
                ),
                None,
            )
            document_number = DocumentNumberingService.generate_document_number(
                db,
                project_id,
                config.project_code,
                payload.discipline_code,
                payload.sub_code,
            )
            parsed = parse_document_number(document_number, config.separator)
            # Project codes may contain the separator; the sequence is always last.
            sequence_number = (
                parsed.sequence
                if parsed is not None
                else document_number.rsplit(config.separator, 1)[-1]
            )

            document = MasterDocument(
                project_id=project_id,
                document_number=document_number,
                project_code=config.project_code,
                discipline_code=payload.discipline_code,
                discipline_name=discipline_name,
                sub_code=payload.sub_code,
                sequence_number=sequence_number,
                document_title=payload.document_title,
                document_type=payload.document_type,
                description=payload.description,
                category=payload.category,
                status=MasterDocumentStatus.DRAFT.value,
                current_revision=settings.DOCUMENT_DEFAULT_REVISION,
                predecessors=[],
                successors=[],
                related_documents=[],
                assigned_to=list(payload.assigned_to),
                assigned_to_names=list(payload.assigned_to_names),
                due_date=payload.due_date,
                visibility=payload.visibility,
                priority=payload.priority,
                tags=list(payload.tags),
            )
            document.stamp_created(created_by)
            db.add(document)
            db.flush()

        logger.info(
            "master_document_created project=%s number=%s user=%s",
            project_id,
            document_number,
            created_by,
        )
        return document

    @staticmethod
    def get_master_document(
        db: Session,
        project_id: str,
        document_id: str,
        include_deleted: bool = False,
    ) -> MasterDocument:
        stmt = (
            select(MasterDocument)
            .where(MasterDocument.project_id == project_id)
            .where(MasterDocument.id == document_id)
        )
        if not include_deleted:
            stmt = stmt.where(MasterDocument.is_deleted.is_(False))
        document = db.execute(stmt).scalar_one_or_none()
        if document is None:
            raise NotFoundError(
                f"Document '{document_id}' not found.",
                details={"project_id": project_id, "document_id": document_id},
            )
        return document

    @staticmethod
    def list_master_documents(
        db: Session,
        project_id: str,
        status: MasterDocumentStatus | str | None = None,
        discipline_code: str | None = None,
        assigned_to: str | None = None,
        only_deleted: bool = False,
    ) -> list[MasterDocument]:
        stmt = (
            select(MasterDocument)
            .where(MasterDocument.project_id == project_id)
            .where(MasterDocument.is_deleted.is_(only_deleted))
            .order_by(MasterDocument.document_number.asc())
        )
        if status is not None:
            stmt = stmt.where(MasterDocument.status == MasterDocumentStatus.normalize(status).value)
        if discipline_code:
            stmt = stmt.where(MasterDocument.discipline_code == discipline_code)
        rows = db.execute(stmt).scalars().all()
        if assigned_to:
            # JSON containment differs per backend; the list is small enough to filter here.
            rows = [row for row in rows if assigned_to in (row.assigned_to or [])]
        return list(rows)

    @staticmethod
    def update_document_status(
        db: Session,
        project_id: str,
        document_id: str,
        status: MasterDocumentStatus | str,
        changed_by: str,
        revision: str | None = None,
    ) -> MasterDocument:
        """
        Apply a status change (and optional new revision), then push the new
        snapshot to every linked document. Both land in one commit.
        """
        target = MasterDocumentStatus.normalize(status)
        with transaction_scope(db):
            document = db.execute(
                select(MasterDocument)
                .where(MasterDocument.project_id == project_id)
                .where(MasterDocument.id == document_id)
                .where(MasterDocument.is_deleted.is_(False))
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if document is None:
                raise NotFoundError(
                    f"Document '{document_id}' not found.",
                    details={"project_id": project_id, "document_id": document_id},
                )

            current = MasterDocumentStatus.normalize(document.status)
            if not current.can_transition_to(target):
                raise InvalidStatusTransitionError(
                    f"Cannot move document {document.document_number} "
                    f"from {current.value} to {target.value}.",
                    details={"from_status": current.value, "to_status": target.value},
                )

            now = _utcnow()
            if target is MasterDocumentStatus.IN_PROGRESS and document.actual_start_date is None:
                document.actual_start_date = now
            elif target is MasterDocumentStatus.ACCEPTED:
                document.actual_completion_date = now

            document.status = target.value
            if revision:
                document.current_revision = revision
            document.stamp_changed(changed_by)

            updated = DocumentLinkService(db).refresh_linked_snapshots(
                project_id,
                document,
                target,
                document.current_revision,
            )

        logger.info(
            "master_document_status_updated project=%s document=%s status=%s linked_updated=%s user=%s",
            project_id,
            document_id,
            target.value,
            updated,
            changed_by,
        )
        return document

    @staticmethod
    def soft_delete_master_document(
        db: Session,
        project_id: str,
        document_id: str,
        deleted_by: str,
    ) -> MasterDocument:
        """Flag only; the row stays so other documents' link snapshots keep resolving."""
        with transaction_scope(db):
            document = MasterDocumentService.get_master_document(db, project_id, document_id)
            document.is_deleted = True
            document.deleted_by = deleted_by
            document.deleted_at = _utcnow()
            document.stamp_changed(deleted_by)
        return document

    @staticmethod
    def get_document_statistics(db: Session, project_id: str) -> dict:
        documents = MasterDocumentService.list_master_documents(db, project_id)
        by_status: dict[str, int] = {}
        by_discipline: dict[str, int] = {}
        overdue = 0
        completed = 0
        now = _utcnow()

        for document in documents:
            status = MasterDocumentStatus.normalize(document.status)
            by_status[status.value] = by_status.get(status.value, 0) + 1
            by_discipline[document.discipline_code] = by_discipline.get(document.discipline_code, 0) + 1
            if status.is_complete:
                completed += 1
            elif document.due_date is not None and document.due_date < now:
                overdue += 1

        total = len(documents)
        return {
            "total": total,
            "by_status": by_status,
            "by_discipline": by_discipline,
            "overdue": overdue,
            "completion_rate": (completed / total) * 100 if total else 0.0,
        }
