from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from casedesk.domain.constants import CaseSource, CaseStatus, PriorityLevel
from casedesk.domain.models.case_record import CaseRecord
from casedesk.domain.rules.derivation import display_values

_PENDING_STATUSES = {CaseStatus.OPEN.value, CaseStatus.IN_PROGRESS.value}


@dataclass(frozen=True, slots=True)
class DashboardSummary:
    total: int = 0
    critical: int = 0
    pending: int = 0
    assigned: int = 0
    manual: int = 0
    system: int = 0
    by_priority: dict[str, int] = field(default_factory=dict)
    by_status: dict[str, int] = field(default_factory=dict)


class DashboardService:
    def summarize(self, cases: Iterable[CaseRecord]) -> DashboardSummary:
        items = list(cases)
        priorities = Counter(display_values(case).priority for case in items)
        statuses = Counter(case.status for case in items)
        sources = Counter(case.source for case in items)
        return DashboardSummary(
            total=len(items),
            critical=priorities.get(PriorityLevel.CRITICAL.value, 0),
            pending=sum(1 for case in items if case.status in _PENDING_STATUSES),
            assigned=sum(1 for case in items if case.assigned_to),
            manual=sources.get(CaseSource.MANUAL.value, 0),
            system=sources.get(CaseSource.SYSTEM.value, 0),
            by_priority={level: priorities.get(level, 0) for level in PriorityLevel.values()},
            by_status=dict(statuses),
        )
