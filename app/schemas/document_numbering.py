from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .base import BaseSchema


class DisciplineSubCode(BaseModel):
    sub_code: str = Field(min_length=1, max_length=20)
    name: str
    description: str = ""
    is_active: bool = True


class DisciplineCode(BaseModel):
    code: str = Field(min_length=1, max_length=20)
    name: str
    description: str = ""
    sub_codes: list[DisciplineSubCode] = Field(default_factory=list)
    is_active: bool = True
    sort_order: int = 0

    @field_validator("code")
    @classmethod
    def strip_code(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("code must not be blank.")
        return normalized


class NumberingInitRequest(BaseModel):
    project_code: str = Field(min_length=1, max_length=50)
    separator: str | None = Field(default=None, min_length=1, max_length=5)
    sequence_digits: int | None = Field(default=None, ge=1, le=10)
    # None => seed with the standard discipline catalog
    disciplines: list[DisciplineCode] | None = None


class NumberingConfigResponse(BaseSchema):
    id: int
    project_id: str
    project_code: str
    separator: str
    sequence_digits: int
    disciplines: list[DisciplineCode]
    sequence_counters: dict[str, int]
    created_by: str
    created_at: datetime
    updated_at: datetime


class DocumentNumberRequest(BaseModel):
    discipline_code: str = Field(min_length=1, max_length=20)
    sub_code: str | None = Field(default=None, max_length=20)
    project_code: str | None = Field(default=None, max_length=50)


class DocumentNumberResponse(BaseModel):
    document_number: str


class NextSequenceResponse(BaseModel):
    counter_key: str
    next_sequence: int
    preview_number: str


class DocumentNumberFormat(BaseModel):
    project_code: str
    separator: str = "-"
    discipline_code: str
    sequence_digits: int = Field(default=3, ge=1)


class ValidateNumberRequest(BaseModel):
    document_number: str
    format: DocumentNumberFormat


class ValidateNumberResponse(BaseModel):
    document_number: str
    is_valid: bool


class ParsedNumberResponse(BaseModel):
    project_code: str
    discipline_code: str
    sequence: str
    sub_code: str | None = None
