from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from casedesk.domain.models.case_record import CaseRecord
from casedesk.domain.rules.derivation import display_values

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SelectionSummary:
    count: int
    status_counts: dict[str, int] = field(default_factory=dict)
    priority_counts: dict[str, int] = field(default_factory=dict)


class SelectionService:
    """Working set of case ids, scoped to the currently visible view."""

    def __init__(self) -> None:
        self._ids: set[str] = set()

    @property
    def ids(self) -> frozenset[str]:
        return frozenset(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, case_id: object) -> bool:
        return case_id in self._ids

    def select(self, case_id: str) -> None:
        self._ids.add(case_id)

    def deselect(self, case_id: str) -> None:
        self._ids.discard(case_id)

    def toggle(self, case_id: str) -> bool:
        if case_id in self._ids:
            self._ids.remove(case_id)
            return False
        self._ids.add(case_id)
        return True

    def select_all(self, view: Iterable[CaseRecord]) -> frozenset[str]:
        """Replace the selection with exactly the ids in ``view``."""
        self._ids = {case.id for case in view}
        return self.ids

    def clear(self, *_args: object) -> None:
        # accepts and ignores view-change listener arguments
        if self._ids:
            logger.debug("Clearing selection of %d cases", len(self._ids))
        self._ids.clear()

    def bind_view(self, view: Iterable[CaseRecord]) -> frozenset[str]:
        visible = {case.id for case in view}
        dropped = self._ids - visible
        if dropped:
            logger.debug("Pruned %d selected cases no longer visible", len(dropped))
            self._ids &= visible
        return self.ids

    def selected(self, view: Sequence[CaseRecord]) -> list[CaseRecord]:
        return [case for case in view if case.id in self._ids]

    def summary(self, view: Sequence[CaseRecord]) -> SelectionSummary:
        chosen = self.selected(view)
        return SelectionSummary(
            count=len(chosen),
            status_counts=dict(Counter(case.status for case in chosen)),
            priority_counts=dict(Counter(display_values(case).priority for case in chosen)),
        )
