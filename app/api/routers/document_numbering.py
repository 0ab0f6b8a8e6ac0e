from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.deps.request_identity import get_request_user_email
from app.db.session import get_db
from app.schemas.document_numbering import (
    DisciplineCode,
    DocumentNumberRequest,
    DocumentNumberResponse,
    NextSequenceResponse,
    NumberingConfigResponse,
    NumberingInitRequest,
    ParsedNumberResponse,
    ValidateNumberRequest,
    ValidateNumberResponse,
)
from app.services.document_errors import DocumentServiceFailure
from app.services.document_numbering_service import (
    DocumentNumberingService,
    build_counter_key,
    format_document_number,
    parse_document_number,
    validate_document_number,
)

# Numbering is configured and consumed per project
router = APIRouter(
    prefix="/api/v1/projects/{project_id}/numbering",
    tags=["Document Register - Numbering"],
)


def _raise_service_failure(exc: DocumentServiceFailure) -> None:
    raise HTTPException(status_code=exc.status_code, detail=exc.to_detail())


@router.get("", response_model=NumberingConfigResponse)
def fetch_numbering_config(project_id: str, db: Session = Depends(get_db)):
    try:
        return DocumentNumberingService.get_numbering_config(db, project_id)
    except DocumentServiceFailure as exc:
        _raise_service_failure(exc)


@router.post("", response_model=NumberingConfigResponse, status_code=status.HTTP_201_CREATED)
def initialize_numbering(
    project_id: str,
    payload: NumberingInitRequest,
    db: Session = Depends(get_db),
    user_email: str = Depends(get_request_user_email),
):
    """Create the project's numbering config, seeded with the standard catalog by default."""
    try:
        config = DocumentNumberingService.initialize_project_numbering(
            db,
            project_id,
            payload.project_code,
            created_by=user_email,
            disciplines=payload.disciplines,
            separator=payload.separator,
            sequence_digits=payload.sequence_digits,
        )
        db.commit()
    except DocumentServiceFailure as exc:
        db.rollback()
        _raise_service_failure(exc)
    return config


@router.get("/disciplines", response_model=list[DisciplineCode])
def fetch_active_disciplines(project_id: str, db: Session = Depends(get_db)):
    try:
        return DocumentNumberingService.list_active_disciplines(db, project_id)
    except DocumentServiceFailure as exc:
        _raise_service_failure(exc)


@router.post(
    "/disciplines",
    response_model=NumberingConfigResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_discipline(
    project_id: str,
    payload: DisciplineCode,
    db: Session = Depends(get_db),
    user_email: str = Depends(get_request_user_email),
):
    try:
        config = DocumentNumberingService.add_discipline(db, project_id, payload, user_email)
        db.commit()
    except DocumentServiceFailure as exc:
        db.rollback()
        _raise_service_failure(exc)
    return config


@router.get("/next", response_model=NextSequenceResponse)
def preview_next_number(
    project_id: str,
    discipline_code: str = Query(..., min_length=1),
    sub_code: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    """
    Preview the next sequence for a discipline (and optional sub-code).
    Nothing is reserved; a later generate call may issue a different number.
    """
    try:
        config = DocumentNumberingService.get_numbering_config(db, project_id)
        next_sequence = DocumentNumberingService.get_next_sequence_number(
            db, project_id, discipline_code, sub_code
        )
    except DocumentServiceFailure as exc:
        _raise_service_failure(exc)
    return NextSequenceResponse(
        counter_key=build_counter_key(discipline_code, sub_code, config.separator),
        next_sequence=next_sequence,
        preview_number=format_document_number(
            config.project_code,
            discipline_code,
            next_sequence,
            separator=config.separator,
            sequence_digits=config.sequence_digits,
            sub_code=sub_code,
        ),
    )


@router.post("/generate", response_model=DocumentNumberResponse, status_code=status.HTTP_201_CREATED)
def generate_number(
    project_id: str,
    payload: DocumentNumberRequest,
    db: Session = Depends(get_db),
):
    try:
        document_number = DocumentNumberingService.generate_document_number(
            db,
            project_id,
            payload.project_code,
            payload.discipline_code,
            payload.sub_code,
        )
        db.commit()
    except DocumentServiceFailure as exc:
        db.rollback()
        _raise_service_failure(exc)
    return DocumentNumberResponse(document_number=document_number)


@router.post("/validate", response_model=ValidateNumberResponse)
def validate_number(project_id: str, payload: ValidateNumberRequest):
    del project_id
    return ValidateNumberResponse(
        document_number=payload.document_number,
        is_valid=validate_document_number(payload.document_number, payload.format),
    )


@router.get("/parse", response_model=ParsedNumberResponse)
def parse_number(
    project_id: str,
    document_number: str = Query(..., min_length=1),
    separator: str = Query(default="-", min_length=1),
):
    del project_id
    parsed = parse_document_number(document_number, separator)
    if parsed is None:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "INVALID_DOCUMENT_NUMBER",
                "message": f"'{document_number}' is not a document number.",
            },
        )
    return ParsedNumberResponse(
        project_code=parsed.project_code,
        discipline_code=parsed.discipline_code,
        sequence=parsed.sequence,
        sub_code=parsed.sub_code,
    )
