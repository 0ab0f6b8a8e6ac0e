from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(eq=False)
class DocumentServiceFailure(Exception):
    message: str
    code: str = "DOCUMENT_ERROR"
    status_code: int = 400
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message

    def to_detail(self) -> dict:
        # code and message always win over a same-named details key
        return {**self.details, "code": self.code, "message": self.message}


@dataclass(eq=False)
class NotInitializedError(DocumentServiceFailure):
    code: str = "NUMBERING_NOT_INITIALIZED"
    status_code: int = 409


@dataclass(eq=False)
class NumberingAlreadyInitializedError(DocumentServiceFailure):
    code: str = "NUMBERING_EXISTS"
    status_code: int = 409


@dataclass(eq=False)
class DuplicateDisciplineError(DocumentServiceFailure):
    code: str = "DISCIPLINE_EXISTS"
    status_code: int = 409


@dataclass(eq=False)
class NotFoundError(DocumentServiceFailure):
    code: str = "NOT_FOUND"
    status_code: int = 404


@dataclass(eq=False)
class CircularDependencyError(DocumentServiceFailure):
    code: str = "CIRCULAR_DEPENDENCY"
    status_code: int = 409


@dataclass(eq=False)
class DuplicateLinkError(DocumentServiceFailure):
    code: str = "LINK_EXISTS"
    status_code: int = 409


@dataclass(eq=False)
class InvalidStatusTransitionError(DocumentServiceFailure):
    code: str = "INVALID_STATUS_TRANSITION"
    status_code: int = 409
