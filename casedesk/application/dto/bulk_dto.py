from __future__ import annotations

from pydantic import BaseModel, Field

from casedesk.domain.constants import BulkOperation


class BulkItemResult(BaseModel):
    case_id: str
    ok: bool
    error: str | None = None


class BulkResult(BaseModel):
    operation: BulkOperation
    items: list[BulkItemResult] = Field(default_factory=list)
    artifact_path: str | None = None

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def succeeded(self) -> list[str]:
        return [item.case_id for item in self.items if item.ok]

    @property
    def failed(self) -> list[str]:
        return [item.case_id for item in self.items if not item.ok]

    @property
    def has_failures(self) -> bool:
        return any(not item.ok for item in self.items)

    def summary(self) -> str:
        return f"{len(self.succeeded)} of {self.total} succeeded"
