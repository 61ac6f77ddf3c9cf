from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from casedesk.application.dto.auth_dto import Principal
from casedesk.application.dto.case_dto import CaseCreateRequest, CaseUpdateRequest
from casedesk.application.exceptions import AuthError, CaseNotFoundError, StoreError
from casedesk.application.services.notification_service import NotificationService
from casedesk.application.store_contract import CaseStore
from casedesk.config import PatientIdStrategy, settings
from casedesk.domain.constants import MEDICAL_CASES_TABLE, RepositoryState
from casedesk.domain.models.case_record import CaseRecord
from casedesk.domain.rules.case_transform import apply_case_patch, transform_case

logger = logging.getLogger(__name__)

CasesListener = Callable[[tuple[CaseRecord, ...]], None]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class CaseRepository:
    """Owns the canonical case collection.

    Every fetch replaces the collection wholesale. ``add_case`` and
    ``update_case`` change it synchronously, ahead of the next poll. A poll
    that resolves after a local change may overwrite it until the following
    poll reconciles.
    """

    def __init__(
        self,
        store: CaseStore,
        notifications: NotificationService | None = None,
        *,
        poll_interval: float | None = None,
        patient_id_strategy: PatientIdStrategy | None = None,
        blob_bucket: str | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.store = store
        self.notifications = notifications or NotificationService()
        self.poll_interval = poll_interval if poll_interval is not None else settings.poll_interval_seconds
        self.patient_id_strategy = patient_id_strategy or settings.patient_id_strategy
        self.blob_bucket = blob_bucket or settings.blob_bucket
        self._clock = clock

        self._cases: tuple[CaseRecord, ...] = ()
        self._state = RepositoryState.IDLE
        self._version = 0
        self._last_error: Exception | None = None
        self._principal: Principal | None = None
        self._session_epoch = 0
        self._listeners: list[CasesListener] = []
        self._inflight: asyncio.Future[tuple[CaseRecord, ...]] | None = None
        self._poll_task: asyncio.Task[None] | None = None
        self._mounted = True

    @property
    def cases(self) -> tuple[CaseRecord, ...]:
        return self._cases

    @property
    def state(self) -> RepositoryState:
        return self._state

    @property
    def version(self) -> int:
        return self._version

    @property
    def last_error(self) -> Exception | None:
        return self._last_error

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def refetch_pending(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def subscribe(self, listener: CasesListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def get(self, case_id: str) -> CaseRecord | None:
        for record in self._cases:
            if record.id == case_id:
                return record
        return None

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def set_principal(self, principal: Principal | None) -> None:
        """Pin the session used by later fetches; ``None`` signs out.

        Signing out drops the collection at once. Later fetches fall back to
        ``store.current_principal()``.
        """
        self._principal = principal
        self._session_epoch += 1
        if principal is None:
            self._last_error = None
            self._state = RepositoryState.IDLE
            self._replace(())
            logger.info("Session cleared, case collection emptied")

    async def fetch_all(self, principal: Principal | None = None) -> tuple[CaseRecord, ...]:
        """Load every visible case and replace the collection.

        ``principal`` applies to this call only. Without it the pinned
        session is used, then the store's current one, so a sign-out in the
        store is picked up by the next poll.
        """
        if not self._mounted:
            return self._cases
        epoch = self._session_epoch
        self._state = RepositoryState.LOADING
        try:
            resolved = principal or self._principal or await self.store.current_principal()
            if resolved is None:
                raise AuthError()
            rows = await self.store.query(
                MEDICAL_CASES_TABLE,
                visible_to=resolved.user_id,
                order_by="created_at",
                descending=True,
            )
        except AuthError as exc:
            if self._mounted and epoch == self._session_epoch:
                self._handle_auth_error(exc)
            return self._cases
        except Exception as exc:  # noqa: BLE001
            if self._mounted and epoch == self._session_epoch:
                self._handle_store_error(exc)
            return self._cases

        if not self._mounted:
            logger.debug("Discarding %d fetched rows after close", len(rows))
            return self._cases
        if epoch != self._session_epoch:
            logger.debug("Discarding %d fetched rows from a previous session", len(rows))
            return self._cases

        now = self._clock()
        records = tuple(self._transform(row, now) for row in rows)
        self._last_error = None
        self._replace(records)
        self._state = RepositoryState.READY
        sources = Counter(record.source for record in records)
        logger.info(
            "Loaded %d cases for %s (%d manual, %d system)",
            len(records),
            resolved.user_id,
            sources.get("manual", 0),
            sources.get("system", 0),
        )
        return self._cases

    async def refetch(self) -> None:
        """Re-run ``fetch_all``; joins a fetch that is already in flight."""
        task = self._inflight if self.refetch_pending else self._start_refetch()
        if task is None:
            return
        await asyncio.shield(task)

    def _start_refetch(self) -> asyncio.Future[tuple[CaseRecord, ...]] | None:
        if not self._mounted:
            return None
        task = asyncio.ensure_future(self.fetch_all())
        task.add_done_callback(self._on_refetch_done)
        self._inflight = task
        return task

    def _on_refetch_done(self, task: asyncio.Future[tuple[CaseRecord, ...]]) -> None:
        if self._inflight is task:
            self._inflight = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Case refetch crashed", exc_info=(type(exc), exc, exc.__traceback__))

    def _handle_auth_error(self, exc: AuthError) -> None:
        self._last_error = exc
        self._replace(())
        self._state = RepositoryState.READY
        self.notifications.notify("Not signed in", str(exc), level="warning", kind="auth")

    def _handle_store_error(self, exc: Exception) -> None:
        error = exc if isinstance(exc, StoreError) else StoreError(str(exc) or type(exc).__name__, operation="query")
        if error is not exc:
            logger.warning("Case store query failed", exc_info=exc)
        self._last_error = error
        self._state = RepositoryState.ERROR
        self.notifications.notify("Failed to load cases", str(error), level="error", kind="store")

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def start_polling(self, interval: float | None = None) -> None:
        if self.is_polling or not self._mounted:
            return
        period = interval if interval is not None else self.poll_interval
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop(period))
        logger.info("Case polling started, every %ss", period)

    def stop_polling(self) -> None:
        """Cancel the timer only; a refetch already running is left to finish."""
        if self._poll_task is None:
            return
        self._poll_task.cancel()
        self._poll_task = None
        logger.info("Case polling stopped")

    def close(self) -> None:
        self.stop_polling()
        self._mounted = False

    async def _poll_loop(self, period: float) -> None:
        while True:
            await asyncio.sleep(period)
            if self.refetch_pending:
                logger.debug("Skipping poll tick, previous refetch still in flight")
                continue
            self._start_refetch()

    # ------------------------------------------------------------------
    # Local mutation
    # ------------------------------------------------------------------

    def add_case(self, raw: Mapping[str, Any]) -> CaseRecord:
        record = self._transform(raw, self._clock())
        rest = tuple(item for item in self._cases if item.id != record.id)
        self._replace((record, *rest))
        logger.info("Added case %s", record.id)
        return record

    def update_case(self, record: CaseRecord) -> bool:
        for index, item in enumerate(self._cases):
            if item.id == record.id:
                updated = list(self._cases)
                updated[index] = record
                self._replace(tuple(updated))
                return True
        logger.debug("update_case ignored unknown case %s", record.id)
        return False

    def remove_case(self, case_id: str) -> bool:
        remaining = tuple(item for item in self._cases if item.id != case_id)
        if len(remaining) == len(self._cases):
            return False
        self._replace(remaining)
        return True

    # ------------------------------------------------------------------
    # Store-backed mutation
    # ------------------------------------------------------------------

    async def create_case(
        self,
        request: CaseCreateRequest,
        image: bytes | None = None,
        filename: str | None = None,
    ) -> CaseRecord:
        principal = self._principal or await self.store.current_principal()
        if principal is None:
            error = AuthError()
            self.notifications.notify("Not signed in", str(error), level="warning", kind="auth")
            raise error
        row = request.to_row()
        row["user_id"] = principal.user_id
        if image is not None:
            blob_path = f"{principal.user_id}/{uuid4().hex}_{filename or request.image_name}"
            stored_path = await self.store.upload_blob(self.blob_bucket, blob_path, image)
            row["storage_path"] = stored_path
            row["image_data"] = stored_path
        inserted = await self.store.insert(MEDICAL_CASES_TABLE, row)
        record = self.add_case(inserted)
        self.notifications.notify(
            "New case added",
            f"Case {record.image_name or record.id} has been added to the dashboard",
            level="success",
            kind="new-case",
            case_id=record.id,
            priority=record.priority,
        )
        return record

    async def save_update(self, case_id: str, request: CaseUpdateRequest) -> CaseRecord:
        current = self.get(case_id)
        if current is None:
            raise CaseNotFoundError(case_id)
        patch = request.to_patch()
        if not patch:
            return current
        await self.store.update(MEDICAL_CASES_TABLE, case_id, patch)
        # the record may have been replaced by a poll while the update was in flight
        latest = self.get(case_id) or current
        updated = apply_case_patch(latest, patch, now=self._clock())
        self.update_case(updated)
        return updated

    async def archive_case(self, case_id: str) -> None:
        if self.get(case_id) is None:
            raise CaseNotFoundError(case_id)
        await self.store.update(MEDICAL_CASES_TABLE, case_id, {"is_archived": True})
        self.remove_case(case_id)

    async def delete_case(self, case_id: str) -> None:
        if self.get(case_id) is None:
            raise CaseNotFoundError(case_id)
        await self.store.delete(MEDICAL_CASES_TABLE, case_id)
        self.remove_case(case_id)

    # ------------------------------------------------------------------

    def _transform(self, raw: Mapping[str, Any], now: datetime) -> CaseRecord:
        return transform_case(raw, now=now, patient_id_strategy=self.patient_id_strategy)

    def _replace(self, records: tuple[CaseRecord, ...]) -> None:
        self._cases = records
        self._version += 1
        for listener in list(self._listeners):
            try:
                listener(records)
            except Exception:  # noqa: BLE001
                logger.exception("Case listener failed")
