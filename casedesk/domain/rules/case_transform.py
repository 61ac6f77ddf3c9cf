from __future__ import annotations

import hashlib
import logging
import random
import re
from collections.abc import Mapping
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any, Literal

from casedesk.domain.constants import CaseStatus
from casedesk.domain.models.case_record import CaseRecord
from casedesk.domain.rules.derivation import (
    CONFIDENCE_MAX,
    CONFIDENCE_MIN,
    DEFAULT_SEVERITY,
    SEVERITY_MAX,
    SEVERITY_MIN,
    derive_image_type,
    derive_source,
    image_age,
    severity_to_priority,
)

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def transform_case(
    raw: Mapping[str, Any],
    *,
    now: datetime | None = None,
    rng: random.Random | None = None,
    patient_id_strategy: Literal["random", "stable"] = "random",
) -> CaseRecord:
    """Map a store row onto a CaseRecord.

    Total: any missing or malformed field degrades to its default. The stored
    ``priority`` column is never read; priority always follows
    ``severity_rating``.
    """
    current = _as_aware(now) if now is not None else datetime.now(UTC)
    created_at = _parse_timestamp(raw.get("created_at")) or current
    updated_at = _parse_timestamp(raw.get("updated_at")) or created_at
    processed_at = _parse_timestamp(raw.get("processed_at")) or created_at

    severity = _severity(raw.get("severity_rating"))
    case_id = _text(raw.get("id"))
    patient_name = _text(raw.get("patient_name")) or "Unknown Patient"

    return CaseRecord(
        id=case_id,
        patient_name=patient_name,
        patient_id=_text(raw.get("patient_id"))
        or _synthesize_patient_id(
            _text(raw.get("patient_name")),
            case_id=case_id,
            rng=rng,
            strategy=patient_id_strategy,
        ),
        modality=_text(raw.get("modality")) or "Unknown",
        body_part=_text(raw.get("body_part")) or "Unknown",
        image_type=derive_image_type(raw),
        status=_status(raw.get("status")),
        severity_rating=severity,
        priority=severity_to_priority(severity).value,
        ai_confidence=_confidence(raw.get("confidence_score")),
        findings=_text(raw.get("findings")) or "No findings available",
        created_at=created_at,
        updated_at=updated_at,
        processed_at=processed_at,
        image_age=image_age(created_at, current),
        source=derive_source(raw).value,
        image_name=_text(raw.get("image_name")),
        patient_age=_optional_int(raw.get("patient_age")),
        patient_gender=_optional_text(raw.get("patient_gender")),
        institution_name=_optional_text(raw.get("institution_name")),
        recommendations=_optional_text(raw.get("recommendations")),
        user_id=_optional_text(raw.get("user_id")),
        assigned_to=_optional_text(raw.get("assigned_radiologist")),
        radiologist_notes=_optional_text(raw.get("radiologist_notes")),
        comment=_optional_text(raw.get("comment")),
        image_data=_optional_text(raw.get("image_data")),
        storage_path=_optional_text(raw.get("storage_path")),
    )


def apply_case_patch(record: CaseRecord, patch: Mapping[str, Any], *, now: datetime) -> CaseRecord:
    """Reflect a store patch (column names) onto an existing record."""
    changes: dict[str, Any] = {"updated_at": _as_aware(now)}
    if "status" in patch:
        changes["status"] = _status(patch["status"])
    if "severity_rating" in patch:
        severity = _severity(patch["severity_rating"])
        changes["severity_rating"] = severity
        changes["priority"] = severity_to_priority(severity).value
    if "assigned_radiologist" in patch:
        changes["assigned_to"] = _optional_text(patch["assigned_radiologist"])
    if "radiologist_notes" in patch:
        changes["radiologist_notes"] = _optional_text(patch["radiologist_notes"])
    if "comment" in patch:
        changes["comment"] = _optional_text(patch["comment"])
    if "findings" in patch:
        changes["findings"] = _text(patch["findings"]) or "No findings available"
    return replace(record, **changes)


def _synthesize_patient_id(
    patient_name: str,
    *,
    case_id: str,
    rng: random.Random | None,
    strategy: Literal["random", "stable"],
) -> str:
    if strategy == "stable":
        digest = int(hashlib.sha1(f"{case_id}:{patient_name}".encode()).hexdigest(), 16)
        name_suffix, bare_suffix = digest % 1000, digest % 100000
    else:
        source = rng or random
        name_suffix, bare_suffix = source.randrange(1000), source.randrange(100000)
    if patient_name:
        compact = _WHITESPACE_RE.sub("", patient_name).upper()[:6]
        return f"P{compact}{name_suffix}"
    return f"P{bare_suffix}"


def _status(value: Any) -> str:
    text = _text(value).lower()
    if text in CaseStatus.values():
        return text
    if text:
        logger.debug("Unknown case status %r, falling back to open", text)
    return CaseStatus.OPEN.value


def _severity(value: Any) -> int:
    number = _optional_int(value)
    if not number:
        return DEFAULT_SEVERITY
    return max(SEVERITY_MIN, min(SEVERITY_MAX, number))


def _confidence(value: Any) -> int:
    number = _optional_int(value)
    if number is None:
        return CONFIDENCE_MIN
    return max(CONFIDENCE_MIN, min(CONFIDENCE_MAX, number))


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        try:
            return _as_aware(value)
        except OverflowError:
            return None
    text = _text(value)
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        return _as_aware(parsed)
    except (ValueError, OverflowError):
        return None


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return None


def _optional_text(value: Any) -> str | None:
    text = _text(value)
    return text or None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()
