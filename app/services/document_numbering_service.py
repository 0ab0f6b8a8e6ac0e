from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.flow_logging import flow_info
from app.db.session import transaction_scope
from app.models.numbering_config import DocumentNumberingConfig
from app.schemas.document_numbering import DisciplineCode, DocumentNumberFormat
from app.services.document_errors import (
    DuplicateDisciplineError,
    NotInitializedError,
    NumberingAlreadyInitializedError,
)

logger = logging.getLogger(__name__)


STANDARD_DISCIPLINE_CODES: list[dict] = [
    {
        "code": "00",
        "name": "Client Inputs",
        "description": "Documents and data received from the client",
        "sort_order": 0,
        "is_active": True,
        "sub_codes": [
            {"sub_code": "A", "name": "Process Data", "description": "Process design basis and data"},
            {"sub_code": "B", "name": "Equipment List", "description": "Client equipment lists"},
            {"sub_code": "C", "name": "Site Information", "description": "Site surveys and conditions"},
            {"sub_code": "D", "name": "Specifications", "description": "Client standards and specifications"},
        ],
    },
    {"code": "01", "name": "Process", "description": "Process engineering", "sort_order": 1, "is_active": True},
    {"code": "02", "name": "Mechanical", "description": "Mechanical and equipment design", "sort_order": 2, "is_active": True},
    {"code": "03", "name": "Structural", "description": "Structural engineering", "sort_order": 3, "is_active": True},
    {"code": "04", "name": "Piping", "description": "Piping design and layout", "sort_order": 4, "is_active": True},
    {"code": "05", "name": "Electrical", "description": "Electrical engineering", "sort_order": 5, "is_active": True},
    {"code": "06", "name": "Instrumentation", "description": "Instrumentation and control", "sort_order": 6, "is_active": True},
    {"code": "07", "name": "Civil", "description": "Civil works", "sort_order": 7, "is_active": True},
    {"code": "08", "name": "HVAC", "description": "Heating, ventilation and air conditioning", "sort_order": 8, "is_active": True},
    {"code": "09", "name": "Safety", "description": "HSE and safety studies", "sort_order": 9, "is_active": True},
    {"code": "10", "name": "General", "description": "General project documents", "sort_order": 10, "is_active": True},
]


@dataclass(frozen=True)
class ParsedDocumentNumber:
    project_code: str
    discipline_code: str
    sequence: str
    sub_code: str | None = None


def build_counter_key(discipline_code: str, sub_code: str | None, separator: str) -> str:
    """Bare discipline code, or '{discipline}{sep}{sub}' for a sub-code scope."""
    if sub_code:
        return f"{discipline_code}{separator}{sub_code}"
    return discipline_code


def format_document_number(
    project_code: str,
    discipline_code: str,
    sequence: int,
    *,
    separator: str = "-",
    sequence_digits: int = 3,
    sub_code: str | None = None,
) -> str:
    parts = [project_code, discipline_code]
    if sub_code:
        parts.append(sub_code)
    parts.append(str(sequence).zfill(sequence_digits))
    return separator.join(parts)


def validate_document_number(candidate: str, fmt: DocumentNumberFormat) -> bool:
    """
    Match `{project}{sep}{discipline}{sep}[{sub}{sep}]{digits}` exactly.
    A sub-code is any run without the separator; the sequence must have exactly
    `sequence_digits` digits.
    """
    if not candidate or not fmt.separator:
        return False
    sep = re.escape(fmt.separator)
    pattern = (
        f"^{re.escape(fmt.project_code)}{sep}{re.escape(fmt.discipline_code)}{sep}"
        f"(?:(?:(?!{sep}).)+{sep})?"
        f"[0-9]{{{int(fmt.sequence_digits)}}}$"
    )
    return re.fullmatch(pattern, candidate) is not None


def parse_document_number(candidate: str, separator: str = "-") -> ParsedDocumentNumber | None:
    """
    Split on the separator: 3 parts => no sub-code, 4 parts => sub-code.
    Anything else is not a document number. The discipline catalog is not
    consulted.
    """
    if not candidate or not separator:
        return None
    parts = candidate.split(separator)
    if len(parts) == 3:
        project_code, discipline_code, sequence = parts
        return ParsedDocumentNumber(
            project_code=project_code,
            discipline_code=discipline_code,
            sequence=sequence,
        )
    if len(parts) == 4:
        project_code, discipline_code, sub_code, sequence = parts
        return ParsedDocumentNumber(
            project_code=project_code,
            discipline_code=discipline_code,
            sequence=sequence,
            sub_code=sub_code,
        )
    return None


class DocumentNumberingService:
    @staticmethod
    def _config_stmt(project_id: str, *, for_update: bool = False):
        stmt = select(DocumentNumberingConfig).where(
            DocumentNumberingConfig.project_id == project_id
        )
        if for_update:
            # Row lock, and overwrite any copy already sitting in the identity map
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return stmt

    @staticmethod
    def _load_config(
        db: Session,
        project_id: str,
        *,
        for_update: bool = False,
    ) -> DocumentNumberingConfig:
        config = db.execute(
            DocumentNumberingService._config_stmt(project_id, for_update=for_update)
        ).scalar_one_or_none()
        if config is None:
            raise NotInitializedError(
                f"Document numbering is not set up for project '{project_id}'. "
                "Set up numbering first.",
                details={"project_id": project_id},
            )
        return config

    @staticmethod
    def get_numbering_config(db: Session, project_id: str) -> DocumentNumberingConfig:
        return DocumentNumberingService._load_config(db, project_id)

    @staticmethod
    def initialize_project_numbering(
        db: Session,
        project_id: str,
        project_code: str,
        created_by: str,
        disciplines: list[DisciplineCode] | None = None,
        separator: str | None = None,
        sequence_digits: int | None = None,
    ) -> DocumentNumberingConfig:
        catalog = (
            [d.model_dump() for d in disciplines]
            if disciplines is not None
            else [DisciplineCode(**d).model_dump() for d in STANDARD_DISCIPLINE_CODES]
        )
        codes = [d["code"] for d in catalog]
        if len(codes) != len(set(codes)):
            raise DuplicateDisciplineError(
                "Discipline codes must be unique within a project.",
                details={"project_id": project_id},
            )

        with transaction_scope(db):
            existing = db.execute(
                DocumentNumberingService._config_stmt(project_id, for_update=True)
            ).scalar_one_or_none()
            if existing is not None:
                raise NumberingAlreadyInitializedError(
                    f"Document numbering already exists for project '{project_id}'.",
                    details={"project_id": project_id},
                )
            config = DocumentNumberingConfig(
                project_id=project_id,
                project_code=project_code.strip(),
                separator=separator or settings.DOCUMENT_NUMBER_SEPARATOR,
                sequence_digits=sequence_digits or settings.DOCUMENT_SEQUENCE_DIGITS,
                disciplines=catalog,
                sequence_counters={},
            )
            config.stamp_created(created_by)
            db.add(config)
            db.flush()

        flow_info(
            logger,
            "numbering_initialized project=%s code=%s disciplines=%s",
            project_id,
            project_code.strip(),
            len(catalog),
            category="numbering",
        )
        return config

    @staticmethod
    def add_discipline(
        db: Session,
        project_id: str,
        discipline: DisciplineCode,
        changed_by: str,
    ) -> DocumentNumberingConfig:
        with transaction_scope(db):
            config = DocumentNumberingService._load_config(db, project_id, for_update=True)
            catalog = list(config.disciplines or [])
            if any(d.get("code") == discipline.code for d in catalog):
                raise DuplicateDisciplineError(
                    f"Discipline '{discipline.code}' already exists.",
                    details={"project_id": project_id, "discipline_code": discipline.code},
                )
            catalog.append(discipline.model_dump())
            # Reassign so the JSON column is flagged dirty
            config.disciplines = catalog
            config.stamp_changed(changed_by)
        return config

    @staticmethod
    def list_active_disciplines(db: Session, project_id: str) -> list[DisciplineCode]:
        config = DocumentNumberingService.get_numbering_config(db, project_id)
        active = [DisciplineCode(**d) for d in (config.disciplines or []) if d.get("is_active", True)]
        return sorted(active, key=lambda d: d.sort_order)

    @staticmethod
    def generate_document_number(
        db: Session,
        project_id: str,
        project_code: str | None,
        discipline_code: str,
        sub_code: str | None = None,
    ) -> str:
        """
        Atomic read-lock-increment on the project's counter map.

        The config row is locked (SELECT ... FOR UPDATE) for the whole
        read-modify-write, so two callers on the same counter key can never
        commit the same value.
        """
        with transaction_scope(db):
            config = DocumentNumberingService._load_config(db, project_id, for_update=True)

            counter_key = build_counter_key(discipline_code, sub_code, config.separator)
            counters = dict(config.sequence_counters or {})
            next_value = int(counters.get(counter_key, 0)) + 1
            counters[counter_key] = next_value
            config.sequence_counters = counters

            document_number = format_document_number(
                project_code or config.project_code,
                discipline_code,
                next_value,
                separator=config.separator,
                sequence_digits=config.sequence_digits,
                sub_code=sub_code,
            )

        flow_info(
            logger,
            "document_number_generated project=%s key=%s seq=%s number=%s",
            project_id,
            counter_key,
            next_value,
            document_number,
            category="numbering",
        )
        return document_number

    @staticmethod
    def get_next_sequence_number(
        db: Session,
        project_id: str,
        discipline_code: str,
        sub_code: str | None = None,
    ) -> int:
        """
        Preview only. Not atomic with a later generate call, so the number
        actually issued may differ.
        """
        config = DocumentNumberingService.get_numbering_config(db, project_id)
        counter_key = build_counter_key(discipline_code, sub_code, config.separator)
        return int((config.sequence_counters or {}).get(counter_key, 0)) + 1
