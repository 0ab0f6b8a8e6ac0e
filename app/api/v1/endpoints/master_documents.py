from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.deps.request_identity import get_request_user_email
from app.db.session import get_db
from app.schemas.master_document import (
    AsymmetricLinkView,
    DocumentStatistics,
    MasterDocumentCreate,
    MasterDocumentResponse,
    MasterDocumentStatus,
    MasterDocumentStatusUpdate,
    PredecessorCheckResponse,
)
from app.services.document_errors import DocumentServiceFailure
from app.services.document_link_service import DocumentLinkService
from app.services.master_document_service import MasterDocumentService

router = APIRouter()


def _raise_service_failure(exc: DocumentServiceFailure) -> None:
    raise HTTPException(status_code=exc.status_code, detail=exc.to_detail())


def _parse_status_filter(value: str | None) -> MasterDocumentStatus | None:
    if value is None or not value.strip():
        return None
    try:
        return MasterDocumentStatus.normalize(value)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.post("", response_model=MasterDocumentResponse, status_code=status.HTTP_201_CREATED)
def create_master_document(
    project_id: str,
    payload: MasterDocumentCreate,
    db: Session = Depends(get_db),
    user_email: str = Depends(get_request_user_email),
):
    try:
        document = MasterDocumentService.create_master_document(db, project_id, payload, user_email)
        db.commit()
    except DocumentServiceFailure as exc:
        db.rollback()
        _raise_service_failure(exc)
    return document


@router.get("", response_model=list[MasterDocumentResponse])
def list_master_documents(
    project_id: str,
    status_filter: str | None = Query(default=None, alias="status"),
    discipline_code: str | None = Query(default=None),
    assigned_to: str | None = Query(default=None),
    only_deleted: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    return MasterDocumentService.list_master_documents(
        db,
        project_id,
        status=_parse_status_filter(status_filter),
        discipline_code=discipline_code,
        assigned_to=assigned_to,
        only_deleted=only_deleted,
    )


@router.get("/statistics", response_model=DocumentStatistics)
def get_document_statistics(project_id: str, db: Session = Depends(get_db)):
    return DocumentStatistics(**MasterDocumentService.get_document_statistics(db, project_id))


@router.get("/link-audit", response_model=list[AsymmetricLinkView])
def audit_document_links(project_id: str, db: Session = Depends(get_db)):
    """Edges recorded on one endpoint but missing their mirror on the other."""
    return DocumentLinkService(db).find_asymmetric_links(project_id)


@router.get("/{document_id}", response_model=MasterDocumentResponse)
def get_master_document(project_id: str, document_id: str, db: Session = Depends(get_db)):
    try:
        return MasterDocumentService.get_master_document(db, project_id, document_id)
    except DocumentServiceFailure as exc:
        _raise_service_failure(exc)


@router.patch("/{document_id}/status", response_model=MasterDocumentResponse)
def update_document_status(
    project_id: str,
    document_id: str,
    payload: MasterDocumentStatusUpdate,
    db: Session = Depends(get_db),
    user_email: str = Depends(get_request_user_email),
):
    """Move the document through its lifecycle and refresh every linked snapshot."""
    try:
        document = MasterDocumentService.update_document_status(
            db,
            project_id,
            document_id,
            payload.status,
            changed_by=user_email,
            revision=payload.revision,
        )
        db.commit()
    except DocumentServiceFailure as exc:
        db.rollback()
        _raise_service_failure(exc)
    return document


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_master_document(
    project_id: str,
    document_id: str,
    db: Session = Depends(get_db),
    user_email: str = Depends(get_request_user_email),
):
    try:
        MasterDocumentService.soft_delete_master_document(db, project_id, document_id, user_email)
        db.commit()
    except DocumentServiceFailure as exc:
        db.rollback()
        _raise_service_failure(exc)
    return None


@router.get("/{document_id}/predecessor-check", response_model=PredecessorCheckResponse)
def check_predecessors(project_id: str, document_id: str, db: Session = Depends(get_db)):
    try:
        result = DocumentLinkService(db).check_predecessors_completed(project_id, document_id)
    except DocumentServiceFailure as exc:
        _raise_service_failure(exc)
    return PredecessorCheckResponse(
        all_completed=result.all_completed,
        pending_predecessors=result.pending_predecessors,
        stalled_predecessors=result.stalled_predecessors,
    )


@router.get("/{document_id}/ready-successors", response_model=list[MasterDocumentResponse])
def ready_successors(project_id: str, document_id: str, db: Session = Depends(get_db)):
    try:
        return DocumentLinkService(db).get_successors_ready_to_start(project_id, document_id)
    except DocumentServiceFailure as exc:
        _raise_service_failure(exc)
