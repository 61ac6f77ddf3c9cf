from __future__ import annotations

from enum import StrEnum

MEDICAL_CASES_TABLE = "medical_cases"


class CaseStatus(StrEnum):
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    REVIEW_COMPLETED = "review-completed"
    # legacy values still present in older rows
    IN_REVIEW = "in_review"
    COMPLETED = "completed"
    REJECTED = "rejected"

    @classmethod
    def values(cls) -> list[str]:
        return [item.value for item in cls]

    @classmethod
    def canonical(cls) -> list[str]:
        return [cls.OPEN.value, cls.IN_PROGRESS.value, cls.REVIEW_COMPLETED.value]


class PriorityLevel(StrEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def values(cls) -> list[str]:
        return [item.value for item in cls]


PRIORITY_RANK: dict[str, int] = {
    PriorityLevel.CRITICAL: 4,
    PriorityLevel.HIGH: 3,
    PriorityLevel.MEDIUM: 2,
    PriorityLevel.LOW: 1,
}


class CaseSource(StrEnum):
    MANUAL = "manual"
    SYSTEM = "system"

    @classmethod
    def values(cls) -> list[str]:
        return [item.value for item in cls]


class ConfidenceBand(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def values(cls) -> list[str]:
        return [item.value for item in cls]


# inclusive bounds
CONFIDENCE_BANDS: dict[str, tuple[int, int]] = {
    ConfidenceBand.HIGH: (80, 100),
    ConfidenceBand.MEDIUM: (50, 79),
    ConfidenceBand.LOW: (0, 49),
}


class SortKey(StrEnum):
    NEWEST = "newest"
    OLDEST = "oldest"
    CONFIDENCE_HIGH = "confidence-high"
    CONFIDENCE_LOW = "confidence-low"
    UPDATED = "updated"
    PRIORITY = "priority"

    @classmethod
    def values(cls) -> list[str]:
        return [item.value for item in cls]


class BulkOperation(StrEnum):
    STATUS = "status"
    PRIORITY = "priority"
    ASSIGN = "assign"
    EXPORT = "export"
    ARCHIVE = "archive"
    DELETE = "delete"

    @classmethod
    def values(cls) -> list[str]:
        return [item.value for item in cls]


class RepositoryState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class DatePreset(StrEnum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
