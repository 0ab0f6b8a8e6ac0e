from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.flow_logging import flow_info
from app.db.session import transaction_scope
from app.models.numbering_config import DocumentNumberingConfig
from app.models.master_document import MasterDocument
from app.schemas.master_document import (
    LINK_LIST_FIELDS,
    DocumentLink,
    LinkType,
    MasterDocumentStatus,
)
from app.services.document_errors import (
    CircularDependencyError,
    DuplicateLinkError,
    NotFoundError,
)

logger = logging.getLogger(__name__)


@dataclass
class PredecessorCheckResult:
    all_completed: bool
    pending_predecessors: list[DocumentLink] = field(default_factory=list)
    # Pending predecessors parked in CANCELLED/ON_HOLD; they block until someone
    # removes the link or revives the document.
    stalled_predecessors: list[DocumentLink] = field(default_factory=list)


@dataclass(frozen=True)
class AsymmetricLink:
    document_id: str
    list_field: str
    target_document_id: str


class DocumentLinkService:
    """
    Owns the predecessor/successor/related adjacency lists on MasterDocument.

    Every edge lives on both endpoints as independent snapshots. All writes
    that touch both sides (or fan out to many documents) happen inside one
    transaction so the mirror can never be half-applied.
    """

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)

    def _load_documents(
        self,
        project_id: str,
        document_ids: Iterable[str],
        *,
        for_update: bool = False,
        include_deleted: bool = True,
    ) -> dict[str, MasterDocument]:
        ids = sorted(set(document_ids))
        if not ids:
            return {}
        stmt = (
            select(MasterDocument)
            .where(MasterDocument.project_id == project_id)
            .where(MasterDocument.id.in_(ids))
            .order_by(MasterDocument.id)
        )
        if not include_deleted:
            stmt = stmt.where(MasterDocument.is_deleted.is_(False))
        if for_update:
            # Lock in id order so concurrent link writers cannot deadlock
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        rows = self.db.execute(stmt).scalars().all()
        return {row.id: row for row in rows}

    def _lock_project_graph(self, project_id: str) -> None:
        """
        Serialize ordered-link writers of one project on its numbering row.
        The cycle walk reads successor lists it does not lock, so two
        concurrent inserts on disjoint pairs could otherwise close a cycle.
        """
        self.db.execute(
            select(DocumentNumberingConfig.id)
            .where(DocumentNumberingConfig.project_id == project_id)
            .with_for_update()
        )

    def _require_pair(
        self,
        project_id: str,
        source_id: str,
        target_id: str,
        *,
        include_deleted: bool,
    ) -> tuple[MasterDocument, MasterDocument]:
        docs = self._load_documents(
            project_id,
            [source_id, target_id],
            for_update=True,
            include_deleted=include_deleted,
        )
        missing = [doc_id for doc_id in (source_id, target_id) if doc_id not in docs]
        if missing:
            raise NotFoundError(
                "One or both documents not found.",
                details={"project_id": project_id, "missing_document_ids": missing},
            )
        return docs[source_id], docs[target_id]

    @staticmethod
    def _snapshot(document: MasterDocument, link_type: LinkType, created_at: datetime) -> DocumentLink:
        return DocumentLink(
            master_document_id=document.id,
            document_number=document.document_number,
            document_title=document.document_title,
            link_type=link_type,
            status=MasterDocumentStatus.normalize(document.status),
            current_revision=document.current_revision,
            assigned_to_names=list(document.assigned_to_names or []),
            created_at=created_at,
        )

    @staticmethod
    def _links_to(document: MasterDocument, list_field: str, target_id: str) -> list[dict]:
        return [
            link
            for link in (getattr(document, list_field) or [])
            if link.get("master_document_id") == target_id
        ]

    def _successor_ids(self, project_id: str, document_id: str) -> list[str]:
        successors = self.db.execute(
            select(MasterDocument.successors)
            .where(MasterDocument.project_id == project_id)
            .where(MasterDocument.id == document_id)
        ).scalar_one_or_none()
        return [link.get("master_document_id") for link in (successors or [])]

    def _reaches(self, project_id: str, start: MasterDocument, goal_id: str) -> bool:
        """Depth-first walk of the successor chain from `start` looking for `goal_id`."""
        stack = [link.get("master_document_id") for link in (start.successors or [])]
        visited: set[str] = {start.id}
        while stack:
            current = stack.pop()
            if current == goal_id:
                return True
            if not current or current in visited:
                continue
            visited.add(current)
            stack.extend(self._successor_ids(project_id, current))
        return False

    def create_link(
        self,
        project_id: str,
        source_id: str,
        target_id: str,
        link_type: LinkType | str,
    ) -> DocumentLink:
        """
        PREREQUISITE: target must finish before source starts.
        SUCCESSOR:    source must finish before target starts.
        RELATED:      symmetric, no ordering, exempt from cycle checks.
        """
        link_type = LinkType(link_type)
        if source_id == target_id:
            raise CircularDependencyError(
                "Cannot create this link: a document cannot depend on itself.",
                details={"document_id": source_id},
            )

        with transaction_scope(self.db):
            if link_type is not LinkType.RELATED:
                self._lock_project_graph(project_id)
            source, target = self._require_pair(
                project_id, source_id, target_id, include_deleted=False
            )

            forward_field = link_type.list_field
            mirror_field = link_type.inverse.list_field
            if self._links_to(source, forward_field, target_id) or self._links_to(
                target, mirror_field, source_id
            ):
                raise DuplicateLinkError(
                    f"Documents {source.document_number} and {target.document_number} "
                    f"are already linked as {link_type.value}.",
                    details={"source_document_id": source_id, "target_document_id": target_id},
                )

            if link_type is not LinkType.RELATED:
                if link_type is LinkType.PREREQUISITE:
                    later, earlier = source, target
                else:
                    later, earlier = target, source
                if self._reaches(project_id, later, earlier.id):
                    raise CircularDependencyError(
                        "Cannot create this link: it would create a circular dependency. "
                        "A document cannot depend on itself.",
                        details={"source_document_id": source_id, "target_document_id": target_id},
                    )

            now = self._now()
            forward = self._snapshot(target, link_type, now)
            mirrored = self._snapshot(source, link_type.inverse, now)
            # Reassign whole lists so the JSON columns are flagged dirty
            setattr(
                source,
                forward_field,
                [*(getattr(source, forward_field) or []), forward.model_dump(mode="json")],
            )
            setattr(
                target,
                mirror_field,
                [*(getattr(target, mirror_field) or []), mirrored.model_dump(mode="json")],
            )

        flow_info(
            logger,
            "document_link_created project=%s source=%s target=%s type=%s",
            project_id,
            source_id,
            target_id,
            link_type.value,
            category="links",
        )
        return forward

    def remove_link(
        self,
        project_id: str,
        source_id: str,
        target_id: str,
        link_type: LinkType | str,
    ) -> None:
        link_type = LinkType(link_type)
        with transaction_scope(self.db):
            source, target = self._require_pair(
                project_id, source_id, target_id, include_deleted=True
            )
            forward_field = link_type.list_field
            mirror_field = link_type.inverse.list_field

            if not self._links_to(source, forward_field, target_id) or not self._links_to(
                target, mirror_field, source_id
            ):
                raise NotFoundError(
                    "Link not found.",
                    details={
                        "source_document_id": source_id,
                        "target_document_id": target_id,
                        "link_type": link_type.value,
                    },
                )

            setattr(
                source,
                forward_field,
                [
                    link
                    for link in (getattr(source, forward_field) or [])
                    if link.get("master_document_id") != target_id
                ],
            )
            setattr(
                target,
                mirror_field,
                [
                    link
                    for link in (getattr(target, mirror_field) or [])
                    if link.get("master_document_id") != source_id
                ],
            )

        flow_info(
            logger,
            "document_link_removed project=%s source=%s target=%s type=%s",
            project_id,
            source_id,
            target_id,
            link_type.value,
            category="links",
        )

    def refresh_linked_snapshots(
        self,
        project_id: str,
        document: MasterDocument,
        status: MasterDocumentStatus,
        revision: str,
    ) -> int:
        linked_ids = {
            link.get("master_document_id")
            for list_field in LINK_LIST_FIELDS
            for link in (getattr(document, list_field) or [])
        }
        linked_ids.discard(document.id)
        linked_ids.discard(None)
        if not linked_ids:
            return 0

        linked_docs = self._load_documents(project_id, linked_ids, for_update=True)
        for missing_id in sorted(linked_ids - linked_docs.keys()):
            logger.warning(
                "document_link_dangling project=%s document=%s missing=%s",
                project_id,
                document.id,
                missing_id,
            )

        updated = 0
        for linked in linked_docs.values():
            changed = False
            for list_field in LINK_LIST_FIELDS:
                links = getattr(linked, list_field) or []
                rewritten = []
                for link in links:
                    if link.get("master_document_id") == document.id and (
                        link.get("status") != status.value
                        or link.get("current_revision") != revision
                    ):
                        link = {**link, "status": status.value, "current_revision": revision}
                        changed = True
                    rewritten.append(link)
                if rewritten != links:
                    setattr(linked, list_field, rewritten)
            if changed:
                updated += 1
        return updated

    def propagate_status_change(
        self,
        project_id: str,
        document_id: str,
        new_status: MasterDocumentStatus | str,
        new_revision: str,
    ) -> int:
        """
        Refresh the status/revision snapshot held by every linked document in
        one transaction. Returns how many documents were rewritten; re-running
        with the same values rewrites none.
        """
        status = MasterDocumentStatus.normalize(new_status)
        with transaction_scope(self.db):
            docs = self._load_documents(project_id, [document_id])
            document = docs.get(document_id)
            if document is None:
                raise NotFoundError(
                    f"Document '{document_id}' not found.",
                    details={"project_id": project_id, "document_id": document_id},
                )
            updated = self.refresh_linked_snapshots(project_id, document, status, new_revision)

        flow_info(
            logger,
            "document_status_propagated project=%s document=%s status=%s rev=%s updated=%s",
            project_id,
            document_id,
            status.value,
            new_revision,
            updated,
            category="links",
        )
        return updated

    def check_predecessors_completed(self, project_id: str, document_id: str) -> PredecessorCheckResult:
        docs = self._load_documents(project_id, [document_id])
        document = docs.get(document_id)
        if document is None:
            raise NotFoundError(
                f"Document '{document_id}' not found.",
                details={"project_id": project_id, "document_id": document_id},
            )

        predecessors = [DocumentLink(**link) for link in (document.predecessors or [])]
        if not predecessors:
            return PredecessorCheckResult(all_completed=True)

        # Snapshots can be stale; always read the live rows.
        live = self._load_documents(project_id, [p.master_document_id for p in predecessors])
        pending: list[DocumentLink] = []
        stalled: list[DocumentLink] = []
        for predecessor in predecessors:
            live_doc = live.get(predecessor.master_document_id)
            if live_doc is None:
                continue
            live_status = MasterDocumentStatus.normalize(live_doc.status)
            if live_status.is_complete:
                continue
            refreshed = predecessor.model_copy(
                update={"status": live_status, "current_revision": live_doc.current_revision}
            )
            pending.append(refreshed)
            if live_status.is_terminal:
                stalled.append(refreshed)

        return PredecessorCheckResult(
            all_completed=not pending,
            pending_predecessors=pending,
            stalled_predecessors=stalled,
        )

    def get_successors_ready_to_start(self, project_id: str, document_id: str) -> list[MasterDocument]:
        """Successors still in DRAFT whose predecessors are all complete."""
        docs = self._load_documents(project_id, [document_id])
        document = docs.get(document_id)
        if document is None:
            raise NotFoundError(
                f"Document '{document_id}' not found.",
                details={"project_id": project_id, "document_id": document_id},
            )

        successor_ids = [link.get("master_document_id") for link in (document.successors or [])]
        successors = self._load_documents(project_id, successor_ids, include_deleted=False)
        ready: list[MasterDocument] = []
        for successor_id in successor_ids:
            successor = successors.get(successor_id)
            if successor is None:
                continue
            if MasterDocumentStatus.normalize(successor.status) is not MasterDocumentStatus.DRAFT:
                continue
            if self.check_predecessors_completed(project_id, successor_id).all_completed:
                ready.append(successor)
        return ready

    def find_asymmetric_links(self, project_id: str) -> list[AsymmetricLink]:
        """Edges whose mirror record is missing on the other endpoint."""
        rows = self.db.execute(
            select(MasterDocument).where(MasterDocument.project_id == project_id)
        ).scalars().all()

        edges: set[tuple[str, str, str]] = set()
        for row in rows:
            for link_type in LinkType:
                for link in getattr(row, link_type.list_field) or []:
                    edges.add((row.id, link_type.list_field, link.get("master_document_id")))

        mirror_field = {lt.list_field: lt.inverse.list_field for lt in LinkType}
        broken = [
            AsymmetricLink(document_id=owner, list_field=list_field, target_document_id=target)
            for owner, list_field, target in edges
            if (target, mirror_field[list_field], owner) not in edges
        ]
        return sorted(broken, key=lambda e: (e.document_id, e.list_field, e.target_document_id))
