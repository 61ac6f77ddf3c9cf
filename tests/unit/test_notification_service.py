from __future__ import annotations

import logging

import pytest

from casedesk.application.services.notification_service import Notification, NotificationService


def test_notify_logs_at_level_and_keeps_history(caplog: pytest.LogCaptureFixture) -> None:
    service = NotificationService(history_size=2)

    with caplog.at_level(logging.INFO, logger="casedesk.application.services.notification_service"):
        service.info("first")
        service.warning("second")
        service.error("third", title="Store")

    assert [item.message for item in service.history] == ["second", "third"]
    assert caplog.records[-1].levelno == logging.ERROR
    assert "Store: third" in caplog.records[-1].getMessage()


def test_unknown_level_falls_back_to_info() -> None:
    item = NotificationService().notify("Title", "body", level="shout")

    assert item.level == "info"


def test_failing_sink_does_not_block_others() -> None:
    service = NotificationService()
    received: list[Notification] = []

    def _broken(_item: Notification) -> None:
        raise RuntimeError("toast widget gone")

    service.subscribe(_broken)
    unsubscribe = service.subscribe(received.append)

    service.success("saved")
    unsubscribe()
    service.success("saved again")

    assert [item.message for item in received] == ["saved"]
