from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class CaseRecord:
    id: str
    patient_name: str
    patient_id: str
    modality: str
    body_part: str
    image_type: str
    status: str
    severity_rating: int
    priority: str
    ai_confidence: int
    findings: str
    created_at: datetime
    updated_at: datetime
    processed_at: datetime
    image_age: str
    source: str
    image_name: str = ""
    patient_age: int | None = None
    patient_gender: str | None = None
    institution_name: str | None = None
    recommendations: str | None = None
    user_id: str | None = None
    assigned_to: str | None = None
    radiologist_notes: str | None = None
    comment: str | None = None
    image_data: str | None = None
    storage_path: str | None = None


@dataclass(frozen=True, slots=True)
class FindingsOverrides:
    severity: int | None = None
    confidence: int | None = None


@dataclass(frozen=True, slots=True)
class DisplayValues:
    """Values shown to the operator: findings overrides layered on the record."""

    severity: int
    priority: str
    confidence: int
