from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from casedesk.application.dto.auth_dto import Principal
from casedesk.application.services.batch_service import BatchService
from casedesk.application.services.case_alert_service import CaseAlertService
from casedesk.application.services.case_filter_service import CaseFilterService
from casedesk.application.services.case_repository import CaseRepository
from casedesk.application.services.dashboard_service import DashboardService
from casedesk.application.services.notification_service import NotificationService
from casedesk.application.services.selection_service import SelectionService
from casedesk.application.store_contract import CaseStore
from casedesk.config import Settings, settings
from casedesk.domain.models.case_record import CaseRecord
from casedesk.infrastructure.db.session import session_scope
from casedesk.infrastructure.storage.blob_storage import BlobStorage
from casedesk.infrastructure.store.sql_case_store import SqlCaseStore


@dataclass
class Container:
    store: CaseStore
    notifications: NotificationService
    repository: CaseRepository
    filter_service: CaseFilterService
    selection_service: SelectionService
    batch_service: BatchService
    dashboard_service: DashboardService
    alert_service: CaseAlertService
    _unsubscribers: list[Callable[[], None]] = field(default_factory=list, repr=False)

    def visible_cases(self) -> list[CaseRecord]:
        return self.filter_service.view(self.repository.cases)

    def shutdown(self) -> None:
        self.repository.close()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()


def build_container(
    store: CaseStore | None = None,
    *,
    principal: Principal | None = None,
    session_factory: Callable = session_scope,
    config: Settings = settings,
) -> Container:
    if store is None:
        store = SqlCaseStore(session_factory=session_factory, blobs=BlobStorage(), principal=principal)
    notifications = NotificationService()
    repository = CaseRepository(
        store,
        notifications,
        poll_interval=config.poll_interval_seconds,
        patient_id_strategy=config.patient_id_strategy,
        blob_bucket=config.blob_bucket,
    )
    filter_service = CaseFilterService()
    selection_service = SelectionService()
    batch_service = BatchService(repository, notifications, export_dir=config.export_dir)
    alert_service = CaseAlertService(notifications)

    container = Container(
        store=store,
        notifications=notifications,
        repository=repository,
        filter_service=filter_service,
        selection_service=selection_service,
        batch_service=batch_service,
        dashboard_service=DashboardService(),
        alert_service=alert_service,
    )

    container._unsubscribers.append(filter_service.on_view_change(selection_service.clear))
    container._unsubscribers.append(
        repository.subscribe(lambda _cases: selection_service.bind_view(container.visible_cases()))
    )
    if config.notify_case_alerts:
        container._unsubscribers.append(repository.subscribe(alert_service.observe))
    return container
