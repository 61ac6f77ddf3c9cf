from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from casedesk.domain.constants import (
    CONFIDENCE_BANDS,
    CaseSource,
    ConfidenceBand,
    PriorityLevel,
)
from casedesk.domain.models.case_record import CaseRecord, DisplayValues, FindingsOverrides

DEFAULT_SEVERITY = 5
SEVERITY_MIN = 1
SEVERITY_MAX = 10
CONFIDENCE_MIN = 0
CONFIDENCE_MAX = 100

_SEVERITY_RE = re.compile(
    r"\bseverity(?:\s+(?:score|rating))?\s*[:=]?\s*(\d{1,3})(?!\d)", re.IGNORECASE
)
_CONFIDENCE_RE = re.compile(
    r"\bconfidence(?:\s+(?:score|level))?\s*[:=]?\s*(\d{1,3})(?!\d)\s*%?", re.IGNORECASE
)

# severity written to the store when an operator sets a priority directly
_PRIORITY_FLOOR_SEVERITY: dict[str, int] = {
    PriorityLevel.CRITICAL: 8,
    PriorityLevel.HIGH: 6,
    PriorityLevel.MEDIUM: 3,
    PriorityLevel.LOW: 1,
}


def severity_to_priority(score: float) -> PriorityLevel:
    if score >= 8:
        return PriorityLevel.CRITICAL
    if score >= 6:
        return PriorityLevel.HIGH
    if score >= 3:
        return PriorityLevel.MEDIUM
    return PriorityLevel.LOW


def priority_floor_severity(priority: str) -> int:
    try:
        return _PRIORITY_FLOOR_SEVERITY[PriorityLevel(priority)]
    except ValueError as exc:
        raise ValueError(f"Unknown priority: {priority!r}") from exc


def parse_findings_overrides(text: str | None) -> FindingsOverrides:
    """Extract ``Severity: N`` and ``Confidence: N%`` tokens from findings prose.

    Either token may be missing; a missing or out-of-range value comes back
    as ``None``. Never raises for empty or malformed text.
    """
    if not text or not isinstance(text, str):
        return FindingsOverrides()
    severity = _first_int(_SEVERITY_RE, text, SEVERITY_MIN, SEVERITY_MAX)
    confidence = _first_int(_CONFIDENCE_RE, text, CONFIDENCE_MIN, CONFIDENCE_MAX)
    return FindingsOverrides(severity=severity, confidence=confidence)


def display_values(record: CaseRecord) -> DisplayValues:
    overrides = parse_findings_overrides(record.findings)
    severity = overrides.severity if overrides.severity is not None else record.severity_rating
    confidence = overrides.confidence if overrides.confidence is not None else record.ai_confidence
    return DisplayValues(
        severity=severity,
        priority=severity_to_priority(severity).value,
        confidence=confidence,
    )


def confidence_band(value: int) -> ConfidenceBand:
    for band, (low, high) in CONFIDENCE_BANDS.items():
        if low <= value <= high:
            return ConfidenceBand(band)
    return ConfidenceBand.HIGH if value > CONFIDENCE_MAX else ConfidenceBand.LOW


def image_age(created_at: datetime, now: datetime) -> str:
    diff_seconds = (now - created_at).total_seconds()
    days = int(diff_seconds // 86400)
    hours = int(diff_seconds // 3600)
    if days > 0:
        return f"{days}d"
    if hours > 0:
        return f"{hours}h"
    return "< 1h"


def derive_image_type(raw: Mapping[str, Any]) -> str:
    return _text(raw.get("modality")) or _text(raw.get("body_part")) or "Unknown"


def derive_source(raw: Mapping[str, Any]) -> CaseSource:
    stored = _text(raw.get("source")).lower()
    if stored in CaseSource.values():
        return CaseSource(stored)
    if raw.get("user_id"):
        return CaseSource.MANUAL
    if "manual" in _text(raw.get("image_name")).lower():
        return CaseSource.MANUAL
    return CaseSource.SYSTEM


def _first_int(pattern: re.Pattern[str], text: str, low: int, high: int) -> int | None:
    match = pattern.search(text)
    if not match:
        return None
    value = int(match.group(1))
    if value < low or value > high:
        return None
    return value


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()
