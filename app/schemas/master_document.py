from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from .base import BaseSchema


class MasterDocumentStatus(str, Enum):
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ACCEPTED = "ACCEPTED"
    ON_HOLD = "ON_HOLD"
    CANCELLED = "CANCELLED"

    @classmethod
    def normalize(cls, value: "str | MasterDocumentStatus") -> "MasterDocumentStatus":
        """Accept current and legacy status names (case-insensitive)."""
        if isinstance(value, cls):
            return value
        raw = (value or "").strip().upper()
        raw = LEGACY_STATUS_MAP.get(raw, raw)
        try:
            return cls(raw)
        except ValueError:
            raise ValueError(f"Unknown document status '{value}'.") from None

    @property
    def is_complete(self) -> bool:
        # Only these release successors; see DESIGN.md for CANCELLED/ON_HOLD.
        return self in _COMPLETE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    def can_transition_to(self, target: "MasterDocumentStatus") -> bool:
        if target == self:
            return True
        return target in _ALLOWED_TRANSITIONS[self]


# Legacy status mapping for older records and clients
LEGACY_STATUS_MAP: dict[str, str] = {
    "NOT_STARTED": "DRAFT",
    "INTERNAL_REVIEW": "IN_PROGRESS",
    "PM_APPROVED": "IN_PROGRESS",
    "CLIENT_REVIEW": "UNDER_REVIEW",
    "COMMENTED": "UNDER_REVIEW",
    "COMMENT_RESOLUTION": "UNDER_REVIEW",
    "RESUBMITTED": "SUBMITTED",
}

_COMPLETE_STATUSES = frozenset({MasterDocumentStatus.APPROVED, MasterDocumentStatus.ACCEPTED})

_TERMINAL_STATUSES = frozenset(
    {
        MasterDocumentStatus.ACCEPTED,
        MasterDocumentStatus.ON_HOLD,
        MasterDocumentStatus.CANCELLED,
    }
)

_PARK = {MasterDocumentStatus.ON_HOLD, MasterDocumentStatus.CANCELLED}

_ALLOWED_TRANSITIONS: dict[MasterDocumentStatus, frozenset[MasterDocumentStatus]] = {
    MasterDocumentStatus.DRAFT: frozenset({MasterDocumentStatus.IN_PROGRESS, *_PARK}),
    MasterDocumentStatus.IN_PROGRESS: frozenset({MasterDocumentStatus.SUBMITTED, *_PARK}),
    MasterDocumentStatus.SUBMITTED: frozenset({MasterDocumentStatus.UNDER_REVIEW, *_PARK}),
    MasterDocumentStatus.UNDER_REVIEW: frozenset(
        {
            MasterDocumentStatus.APPROVED,
            MasterDocumentStatus.REJECTED,
            MasterDocumentStatus.IN_PROGRESS,
            *_PARK,
        }
    ),
    MasterDocumentStatus.APPROVED: frozenset(
        {MasterDocumentStatus.ACCEPTED, MasterDocumentStatus.IN_PROGRESS, *_PARK}
    ),
    MasterDocumentStatus.REJECTED: frozenset({MasterDocumentStatus.IN_PROGRESS, *_PARK}),
    MasterDocumentStatus.ON_HOLD: frozenset(
        {MasterDocumentStatus.IN_PROGRESS, MasterDocumentStatus.CANCELLED}
    ),
    MasterDocumentStatus.ACCEPTED: frozenset(),
    MasterDocumentStatus.CANCELLED: frozenset(),
}


class LinkType(str, Enum):
    PREREQUISITE = "PREREQUISITE"
    SUCCESSOR = "SUCCESSOR"
    RELATED = "RELATED"

    @property
    def inverse(self) -> "LinkType":
        if self is LinkType.PREREQUISITE:
            return LinkType.SUCCESSOR
        if self is LinkType.SUCCESSOR:
            return LinkType.PREREQUISITE
        return LinkType.RELATED

    @property
    def list_field(self) -> str:
        """Name of the MasterDocument column an edge of this type lives in."""
        return _LINK_LIST_FIELDS[self]


_LINK_LIST_FIELDS = {
    LinkType.PREREQUISITE: "predecessors",
    LinkType.SUCCESSOR: "successors",
    LinkType.RELATED: "related_documents",
}

LINK_LIST_FIELDS: tuple[str, ...] = ("predecessors", "successors", "related_documents")


class DocumentLink(BaseModel):
    """Denormalized edge snapshot embedded on the referencing document."""

    master_document_id: str
    document_number: str
    document_title: str
    link_type: LinkType
    status: MasterDocumentStatus
    current_revision: str | None = None
    assigned_to_names: list[str] = Field(default_factory=list)
    created_at: datetime


class MasterDocumentCreate(BaseModel):
    discipline_code: str = Field(min_length=1, max_length=20)
    sub_code: str | None = Field(default=None, max_length=20)
    document_title: str = Field(min_length=1, max_length=255)
    document_type: str | None = None
    description: str | None = None
    category: str | None = None
    assigned_to: list[str] = Field(default_factory=list)
    assigned_to_names: list[str] = Field(default_factory=list)
    due_date: datetime | None = None
    visibility: str = "CLIENT_VISIBLE"
    priority: str = "MEDIUM"
    tags: list[str] = Field(default_factory=list)

    @field_validator("discipline_code", "sub_code")
    @classmethod
    def strip_codes(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("due_date")
    @classmethod
    def naive_utc_due_date(cls, value: datetime | None) -> datetime | None:
        # Stored in a naive UTC DateTime column
        if value is None or value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    @field_validator("visibility")
    @classmethod
    def validate_visibility(cls, value: str) -> str:
        normalized = (value or "").strip().upper()
        if normalized not in {"CLIENT_VISIBLE", "INTERNAL_ONLY"}:
            raise ValueError("visibility must be CLIENT_VISIBLE or INTERNAL_ONLY.")
        return normalized

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, value: str) -> str:
        normalized = (value or "").strip().upper()
        if normalized not in {"LOW", "MEDIUM", "HIGH", "URGENT"}:
            raise ValueError("priority must be LOW, MEDIUM, HIGH or URGENT.")
        return normalized


class MasterDocumentStatusUpdate(BaseModel):
    status: str
    revision: str | None = Field(default=None, max_length=20)

    @field_validator("status")
    @classmethod
    def validate_status(cls, value: str) -> str:
        return MasterDocumentStatus.normalize(value).value


class MasterDocumentResponse(BaseSchema):
    id: str
    project_id: str
    document_number: str
    project_code: str
    discipline_code: str
    discipline_name: str | None = None
    sub_code: str | None = None
    sequence_number: str
    document_title: str
    document_type: str | None = None
    description: str | None = None
    category: str | None = None
    status: MasterDocumentStatus
    current_revision: str
    predecessors: list[DocumentLink] = Field(default_factory=list)
    successors: list[DocumentLink] = Field(default_factory=list)
    related_documents: list[DocumentLink] = Field(default_factory=list)
    assigned_to: list[str] = Field(default_factory=list)
    assigned_to_names: list[str] = Field(default_factory=list)
    due_date: datetime | None = None
    actual_start_date: datetime | None = None
    actual_completion_date: datetime | None = None
    visibility: str
    priority: str
    tags: list[str] = Field(default_factory=list)
    submission_count: int = 0
    supply_item_count: int = 0
    work_item_count: int = 0
    total_comments: int = 0
    open_comments: int = 0
    resolved_comments: int = 0
    progress_percentage: int = 0
    is_deleted: bool = False
    created_by: str
    created_at: datetime
    updated_at: datetime


class DocumentStatistics(BaseModel):
    total: int
    by_status: dict[str, int]
    by_discipline: dict[str, int]
    overdue: int
    completion_rate: float


class LinkCreateRequest(BaseModel):
    target_document_id: str = Field(min_length=1)
    link_type: LinkType


class StatusPropagationRequest(BaseModel):
    status: str
    revision: str = Field(min_length=1, max_length=20)

    @field_validator("status")
    @classmethod
    def validate_status(cls, value: str) -> str:
        return MasterDocumentStatus.normalize(value).value


class StatusPropagationResponse(BaseModel):
    document_id: str
    updated_documents: int


class PredecessorCheckResponse(BaseModel):
    all_completed: bool
    pending_predecessors: list[DocumentLink]
    stalled_predecessors: list[DocumentLink]


class AsymmetricLinkView(BaseSchema):
    document_id: str
    list_field: str
    target_document_id: str
