from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime, time, timedelta

from casedesk.application.dto.filter_dto import DIMENSIONS, DateRange, FilterState, resolve_dimension
from casedesk.domain.constants import PRIORITY_RANK, CaseSource, DatePreset, SortKey
from casedesk.domain.models.case_record import CaseRecord
from casedesk.domain.rules.derivation import confidence_band, display_values

logger = logging.getLogger(__name__)

ViewListener = Callable[[FilterState, SortKey], None]

_PRESET_DAYS = {
    DatePreset.WEEK: 7,
    DatePreset.MONTH: 30,
    DatePreset.QUARTER: 90,
}


def apply_filters(cases: Iterable[CaseRecord], filters: FilterState) -> list[CaseRecord]:
    """Order-preserving subsequence of ``cases`` matching every active dimension."""
    return [case for case in cases if _matches(case, filters)]


def _matches(case: CaseRecord, filters: FilterState) -> bool:
    term = filters.search.strip().lower()
    if term and not any(
        term in (value or "").lower()
        for value in (case.patient_name, case.patient_id, case.body_part, case.findings)
    ):
        return False

    start, end = filters.date_range.start, filters.date_range.end
    if start is not None and case.created_at < _aware(start):
        return False
    if end is not None and case.created_at > _aware(end):
        return False

    if filters.priorities and display_values(case).priority not in filters.priorities:
        return False
    if filters.statuses and case.status not in filters.statuses:
        return False
    if filters.image_types and case.image_type not in filters.image_types:
        return False
    if filters.body_parts and case.body_part not in filters.body_parts:
        return False
    if filters.assigned_to and (not case.assigned_to or case.assigned_to not in filters.assigned_to):
        return False
    if filters.source and case.source not in filters.source:
        return False
    if filters.ai_confidence and confidence_band(case.ai_confidence).value not in filters.ai_confidence:
        return False
    return True


def toggle_dimension(filters: FilterState, key: str, value: str) -> FilterState:
    dimension = resolve_dimension(key)
    current = filters.values_for(dimension)
    updated = current - {value} if value in current else current | {value}
    return filters.model_copy(update={dimension: frozenset(updated)})


def clear_all(filters: FilterState | None = None) -> FilterState:
    return FilterState()


def sort_cases(cases: Iterable[CaseRecord], key: SortKey | str) -> list[CaseRecord]:
    sort_key = SortKey(key)
    items = list(cases)
    if sort_key is SortKey.NEWEST:
        return sorted(items, key=lambda c: c.created_at, reverse=True)
    if sort_key is SortKey.OLDEST:
        return sorted(items, key=lambda c: c.created_at)
    if sort_key is SortKey.CONFIDENCE_HIGH:
        return sorted(items, key=lambda c: c.ai_confidence, reverse=True)
    if sort_key is SortKey.CONFIDENCE_LOW:
        return sorted(items, key=lambda c: c.ai_confidence)
    if sort_key is SortKey.UPDATED:
        return sorted(items, key=lambda c: c.updated_at, reverse=True)
    return sorted(items, key=lambda c: PRIORITY_RANK.get(display_values(c).priority, 0), reverse=True)


def active_filter_count(filters: FilterState) -> int:
    count = 1 if filters.search.strip() else 0
    if filters.date_range.is_set:
        count += 1
    return count + sum(len(filters.values_for(dimension)) for dimension in DIMENSIONS)


def filter_options(cases: Iterable[CaseRecord]) -> dict[str, list[str]]:
    """Distinct body parts and assignees in first-seen order."""
    body_parts: dict[str, None] = {}
    assignees: dict[str, None] = {}
    for case in cases:
        if case.body_part:
            body_parts.setdefault(case.body_part, None)
        if case.assigned_to:
            assignees.setdefault(case.assigned_to, None)
    return {"body_parts": list(body_parts), "assigned_to": list(assignees)}


def split_by_source(cases: Iterable[CaseRecord]) -> tuple[list[CaseRecord], list[CaseRecord]]:
    manual: list[CaseRecord] = []
    system: list[CaseRecord] = []
    for case in cases:
        (manual if case.source == CaseSource.MANUAL else system).append(case)
    return manual, system


def date_preset_range(preset: DatePreset | str, now: datetime | None = None) -> DateRange:
    current = _aware(now) if now is not None else datetime.now(UTC)
    preset_value = DatePreset(preset)
    if preset_value is DatePreset.TODAY:
        day = current.date()
        return DateRange(
            start=datetime.combine(day, time.min, tzinfo=current.tzinfo),
            end=datetime.combine(day, time.max, tzinfo=current.tzinfo),
        )
    return DateRange(start=current - timedelta(days=_PRESET_DAYS[preset_value]), end=current)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class CaseFilterService:
    """Holds the dashboard's filter and sort state.

    Every change that alters the visible view is reported to listeners; the
    selection service clears itself on those events.
    """

    def __init__(self, sort_key: SortKey = SortKey.NEWEST, clock: Callable[[], datetime] | None = None) -> None:
        self._filters = FilterState()
        self._sort_key = SortKey(sort_key)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._listeners: list[ViewListener] = []

    @property
    def filters(self) -> FilterState:
        return self._filters

    @property
    def sort_key(self) -> SortKey:
        return self._sort_key

    @property
    def active_count(self) -> int:
        return active_filter_count(self._filters)

    def on_view_change(self, listener: ViewListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def toggle(self, key: str, value: str) -> FilterState:
        return self._set_filters(toggle_dimension(self._filters, key, value))

    def clear_priorities(self) -> FilterState:
        return self._set_filters(self._filters.model_copy(update={"priorities": frozenset()}))

    def clear_all(self) -> FilterState:
        return self._set_filters(clear_all(self._filters))

    def set_search(self, text: str) -> FilterState:
        return self._set_filters(self._filters.model_copy(update={"search": text or ""}))

    def set_date_range(self, start: datetime | None = None, end: datetime | None = None) -> FilterState:
        return self._set_filters(self._filters.model_copy(update={"date_range": DateRange(start=start, end=end)}))

    def apply_date_preset(self, preset: DatePreset | str) -> FilterState:
        date_range = date_preset_range(preset, self._clock())
        return self._set_filters(self._filters.model_copy(update={"date_range": date_range}))

    def set_sort(self, key: SortKey | str) -> SortKey:
        sort_key = SortKey(key)
        if sort_key is not self._sort_key:
            self._sort_key = sort_key
            self._emit()
        return self._sort_key

    def view(self, cases: Sequence[CaseRecord]) -> list[CaseRecord]:
        return sort_cases(apply_filters(cases, self._filters), self._sort_key)

    def _set_filters(self, filters: FilterState) -> FilterState:
        if filters != self._filters:
            self._filters = filters
            self._emit()
        return self._filters

    def _emit(self) -> None:
        logger.debug("View changed: %d active filters, sort=%s", self.active_count, self._sort_key)
        for listener in list(self._listeners):
            try:
                listener(self._filters, self._sort_key)
            except Exception:  # noqa: BLE001
                logger.exception("View listener failed")
