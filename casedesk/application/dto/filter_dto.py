from __future__ import annotations

from datetime import datetime
from typing import Final, Literal

from pydantic import BaseModel, ConfigDict, Field

Dimension = Literal[
    "priorities",
    "statuses",
    "image_types",
    "body_parts",
    "assigned_to",
    "source",
    "ai_confidence",
]

DIMENSIONS: Final[tuple[Dimension, ...]] = (
    "priorities",
    "statuses",
    "image_types",
    "body_parts",
    "assigned_to",
    "source",
    "ai_confidence",
)

# camelCase names used by the dashboard widgets
_DIMENSION_ALIASES: Final[dict[str, Dimension]] = {
    "imageTypes": "image_types",
    "bodyParts": "body_parts",
    "assignedTo": "assigned_to",
    "aiConfidence": "ai_confidence",
    "aiConfidenceband": "ai_confidence",
    "ai_confidence_band": "ai_confidence",
    "sources": "source",
}


def resolve_dimension(key: str) -> Dimension:
    if key in DIMENSIONS:
        return key  # type: ignore[return-value]
    try:
        return _DIMENSION_ALIASES[key]
    except KeyError as exc:
        raise ValueError(f"Unknown filter dimension: {key!r}") from exc


class DateRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime | None = None
    end: datetime | None = None

    @property
    def is_set(self) -> bool:
        return self.start is not None or self.end is not None


class FilterState(BaseModel):
    """Active dashboard filters. Empty dimension means unconstrained."""

    model_config = ConfigDict(frozen=True)

    search: str = ""
    date_range: DateRange = Field(default_factory=DateRange)
    priorities: frozenset[str] = frozenset()
    statuses: frozenset[str] = frozenset()
    image_types: frozenset[str] = frozenset()
    body_parts: frozenset[str] = frozenset()
    assigned_to: frozenset[str] = frozenset()
    source: frozenset[str] = frozenset()
    ai_confidence: frozenset[str] = frozenset()

    def values_for(self, dimension: str) -> frozenset[str]:
        return getattr(self, resolve_dimension(dimension))
