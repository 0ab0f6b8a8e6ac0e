from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.master_document import (
    DocumentLink,
    LinkCreateRequest,
    LinkType,
    StatusPropagationRequest,
    StatusPropagationResponse,
)
from app.services.document_errors import DocumentServiceFailure
from app.services.document_link_service import DocumentLinkService

router = APIRouter()


def _raise_service_failure(exc: DocumentServiceFailure) -> None:
    raise HTTPException(status_code=exc.status_code, detail=exc.to_detail())


@router.post("", response_model=DocumentLink, status_code=status.HTTP_201_CREATED)
def create_document_link(
    project_id: str,
    document_id: str,
    payload: LinkCreateRequest,
    db: Session = Depends(get_db),
):
    """
    Link this document to a target. The edge is written to both documents
    (PREREQUISITE here shows up as SUCCESSOR on the target) in one commit.
    """
    service = DocumentLinkService(db)
    try:
        link = service.create_link(
            project_id,
            document_id,
            payload.target_document_id,
            payload.link_type,
        )
        db.commit()
    except DocumentServiceFailure as exc:
        db.rollback()
        _raise_service_failure(exc)
    return link


@router.delete("/{target_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_document_link(
    project_id: str,
    document_id: str,
    target_id: str,
    link_type: LinkType = Query(...),
    db: Session = Depends(get_db),
):
    service = DocumentLinkService(db)
    try:
        service.remove_link(project_id, document_id, target_id, link_type)
        db.commit()
    except DocumentServiceFailure as exc:
        db.rollback()
        _raise_service_failure(exc)
    return None


@router.post("/propagate", response_model=StatusPropagationResponse)
def propagate_status(
    project_id: str,
    document_id: str,
    payload: StatusPropagationRequest,
    db: Session = Depends(get_db),
):
    """Re-push a status/revision snapshot to every linked document."""
    service = DocumentLinkService(db)
    try:
        updated = service.propagate_status_change(
            project_id,
            document_id,
            payload.status,
            payload.revision,
        )
        db.commit()
    except DocumentServiceFailure as exc:
        db.rollback()
        _raise_service_failure(exc)
    return StatusPropagationResponse(document_id=document_id, updated_documents=updated)
