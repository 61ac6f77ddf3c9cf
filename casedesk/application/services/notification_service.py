from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

NOTIFICATION_LEVELS = {"success", "warning", "error", "info"}


@dataclass(frozen=True, slots=True)
class Notification:
    level: str
    title: str
    message: str
    kind: str = "status"
    case_id: str | None = None
    priority: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


NotificationSink = Callable[[Notification], None]


class NotificationService:
    """Transient operator notifications: logged, kept in a short history, fanned out to sinks."""

    def __init__(self, history_size: int = 50) -> None:
        self._sinks: list[NotificationSink] = []
        self._history: deque[Notification] = deque(maxlen=history_size)

    @property
    def history(self) -> list[Notification]:
        return list(self._history)

    def subscribe(self, sink: NotificationSink) -> Callable[[], None]:
        self._sinks.append(sink)

        def _unsubscribe() -> None:
            if sink in self._sinks:
                self._sinks.remove(sink)

        return _unsubscribe

    def notify(
        self,
        title: str,
        message: str,
        level: str = "info",
        *,
        kind: str = "status",
        case_id: str | None = None,
        priority: str | None = None,
    ) -> Notification:
        normalized_level = level if level in NOTIFICATION_LEVELS else "info"
        logger = logging.getLogger(__name__)
        if normalized_level == "error":
            logger.error("%s: %s", title, message)
        elif normalized_level == "warning":
            logger.warning("%s: %s", title, message)
        else:
            logger.info("%s: %s", title, message)
        item = Notification(
            level=normalized_level,
            title=title,
            message=message,
            kind=kind,
            case_id=case_id,
            priority=priority,
        )
        self._history.append(item)
        for sink in list(self._sinks):
            try:
                sink(item)
            except Exception:  # noqa: BLE001
                logger.exception("Notification sink failed")
        return item

    def error(self, message: str, title: str = "Error") -> Notification:
        return self.notify(title, message, level="error")

    def warning(self, message: str, title: str = "Warning") -> Notification:
        return self.notify(title, message, level="warning")

    def info(self, message: str, title: str = "Information") -> Notification:
        return self.notify(title, message, level="info")

    def success(self, message: str, title: str = "Done") -> Notification:
        return self.notify(title, message, level="success")
