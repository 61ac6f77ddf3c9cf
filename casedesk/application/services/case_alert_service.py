from __future__ import annotations

from collections.abc import Sequence

from casedesk.application.services.notification_service import Notification, NotificationService
from casedesk.domain.constants import CaseStatus, PriorityLevel
from casedesk.domain.models.case_record import CaseRecord

_ALERT_PRIORITIES = {PriorityLevel.CRITICAL.value, PriorityLevel.HIGH.value}


def _needs_attention(case: CaseRecord) -> bool:
    return case.priority in _ALERT_PRIORITIES and case.status == CaseStatus.OPEN


class CaseAlertService:
    """Turns collection changes into new-case and critical-case notifications."""

    def __init__(self, notifications: NotificationService) -> None:
        self.notifications = notifications
        self._previous: dict[str, CaseRecord] = {}

    def observe(self, cases: Sequence[CaseRecord]) -> list[Notification]:
        emitted: list[Notification] = []
        previous = self._previous
        for case in cases:
            if case.id not in previous:
                emitted.append(
                    self.notifications.notify(
                        "New Case Received",
                        f"{case.image_type} scan for {case.patient_name} ({case.body_part})",
                        level="info",
                        kind="new-case",
                        case_id=case.id,
                        priority=case.priority,
                    )
                )
        for case in cases:
            if not _needs_attention(case):
                continue
            before = previous.get(case.id)
            if before is not None and _needs_attention(before):
                continue
            critical = case.priority == PriorityLevel.CRITICAL
            message = f"{case.priority.upper()} priority: {case.patient_name} - {case.body_part} {case.image_type}"
            if case.findings:
                message = f"{message}. {case.findings}"
            emitted.append(
                self.notifications.notify(
                    "Critical Case Alert" if critical else "Urgent Case Alert",
                    message,
                    level="error" if critical else "warning",
                    kind="critical-case" if critical else "urgent-case",
                    case_id=case.id,
                    priority=case.priority,
                )
            )
        self._previous = {case.id: case for case in cases}
        return emitted

    def reset(self) -> None:
        self._previous = {}
