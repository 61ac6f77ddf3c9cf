from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from casedesk.domain.constants import CaseStatus


class CaseCreateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    image_name: str = Field(..., min_length=1)
    patient_name: str | None = None
    patient_id: str | None = None
    patient_age: int | None = Field(default=None, ge=0, le=150)
    patient_gender: str | None = None
    modality: str | None = None
    body_part: str = Field(..., min_length=1)
    severity_rating: int = Field(default=5, ge=1, le=10)
    confidence_score: int | None = Field(default=None, ge=0, le=100)
    findings: str | None = None
    recommendations: str | None = None
    institution_name: str | None = None
    source: Literal["manual", "system"] = "manual"

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class CaseUpdateRequest(BaseModel):
    """Partial update; only fields that are set are written."""

    model_config = ConfigDict(str_strip_whitespace=True)

    status: str | None = None
    severity_rating: int | None = Field(default=None, ge=1, le=10)
    priority: Literal["critical", "high", "medium", "low"] | None = None
    assigned_radiologist: str | None = None
    radiologist_notes: str | None = None
    comment: str | None = None
    findings: str | None = None
    is_archived: bool | None = None

    @field_validator("status")
    @classmethod
    def _validate_status(cls, v: str | None) -> str | None:
        if v is not None and v not in CaseStatus.values():
            raise ValueError(f"Unknown case status: {v}")
        return v

    def to_patch(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)
