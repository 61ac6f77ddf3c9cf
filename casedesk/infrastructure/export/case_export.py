from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from openpyxl import Workbook

from casedesk.domain.models.case_record import CaseRecord
from casedesk.domain.rules.derivation import display_values

CASE_EXPORT_SCHEMA = "casedesk.cases.v1"

CASES_SHEET = "cases"

CASE_COLUMNS: list[str] = [
    "id",
    "patient_name",
    "patient_id",
    "patient_age",
    "patient_gender",
    "modality",
    "body_part",
    "image_type",
    "image_name",
    "status",
    "severity_rating",
    "priority",
    "display_priority",
    "ai_confidence",
    "source",
    "assigned_to",
    "institution_name",
    "findings",
    "recommendations",
    "radiologist_notes",
    "comment",
    "created_at",
    "updated_at",
    "processed_at",
]


def case_export_filename(now: datetime | None = None) -> str:
    stamp = (now or datetime.now(UTC)).strftime("%Y%m%d_%H%M%S")
    return f"cases_export_{stamp}.xlsx"


def export_cases_excel(
    *,
    cases: Sequence[CaseRecord],
    file_path: Path,
    exported_by: str | None = None,
) -> dict[str, int]:
    wb = Workbook()

    meta = wb.active
    meta.title = "meta"
    meta.append(["schema", CASE_EXPORT_SCHEMA])
    meta.append(["exported_at", datetime.now(UTC).isoformat()])
    meta.append(["exported_by", exported_by or ""])

    ws = wb.create_sheet(title=CASES_SHEET)
    ws.append(CASE_COLUMNS)
    for case in cases:
        row = asdict(case)
        row["display_priority"] = display_values(case).priority
        ws.append([_serialize_value(row.get(col)) for col in CASE_COLUMNS])

    file_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(file_path)
    return {CASES_SHEET: len(cases)}


def _serialize_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value
