from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from pydantic import ValidationError

from casedesk.application.dto.bulk_dto import BulkItemResult, BulkResult
from casedesk.application.dto.case_dto import CaseUpdateRequest
from casedesk.application.exceptions import CaseDeskError, CaseNotFoundError
from casedesk.application.services.case_repository import CaseRepository
from casedesk.application.services.notification_service import NotificationService
from casedesk.config import settings
from casedesk.domain.constants import BulkOperation
from casedesk.domain.rules.derivation import priority_floor_severity
from casedesk.infrastructure.export.case_export import case_export_filename, export_cases_excel

logger = logging.getLogger(__name__)

_NEEDS_VALUE = {BulkOperation.STATUS, BulkOperation.PRIORITY, BulkOperation.ASSIGN}


class BatchService:
    """Applies one operation to many cases.

    Ids are processed one after another. A failure is recorded against its id
    and the run continues; ids that already succeeded stay applied.
    """

    def __init__(
        self,
        repository: CaseRepository,
        notifications: NotificationService | None = None,
        export_dir: Path | None = None,
    ) -> None:
        self.repository = repository
        self.notifications = notifications or repository.notifications
        self.export_dir = export_dir or settings.export_dir

    async def dispatch_bulk(
        self,
        operation: BulkOperation | str,
        ids: Iterable[str],
        value: str | None = None,
    ) -> BulkResult:
        op = BulkOperation(operation)
        case_ids = list(dict.fromkeys(ids))
        if op in _NEEDS_VALUE and not (value or "").strip():
            raise ValueError(f"Bulk {op} requires a value")

        if op is BulkOperation.EXPORT:
            result = self._export(case_ids)
        else:
            items = []
            for case_id in case_ids:
                items.append(await self._apply_one(op, case_id, value))
            result = BulkResult(operation=op, items=items)

        self._report(result)
        return result

    async def _apply_one(self, op: BulkOperation, case_id: str, value: str | None) -> BulkItemResult:
        try:
            if op is BulkOperation.STATUS:
                await self.repository.save_update(case_id, CaseUpdateRequest(status=value))
            elif op is BulkOperation.PRIORITY:
                request = CaseUpdateRequest(severity_rating=priority_floor_severity(value or ""), priority=value)
                await self.repository.save_update(case_id, request)
            elif op is BulkOperation.ASSIGN:
                await self.repository.save_update(case_id, CaseUpdateRequest(assigned_radiologist=value))
            elif op is BulkOperation.ARCHIVE:
                await self.repository.archive_case(case_id)
            elif op is BulkOperation.DELETE:
                await self.repository.delete_case(case_id)
        except CaseNotFoundError:
            return BulkItemResult(case_id=case_id, ok=False, error="Case not found")
        except (CaseDeskError, ValidationError, ValueError) as exc:
            logger.warning("Bulk %s failed for case %s: %s", op, case_id, exc)
            return BulkItemResult(case_id=case_id, ok=False, error=str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Bulk %s crashed for case %s", op, case_id)
            return BulkItemResult(case_id=case_id, ok=False, error=str(exc) or type(exc).__name__)
        return BulkItemResult(case_id=case_id, ok=True)

    def _export(self, case_ids: list[str]) -> BulkResult:
        items: list[BulkItemResult] = []
        found = []
        for case_id in case_ids:
            record = self.repository.get(case_id)
            if record is None:
                items.append(BulkItemResult(case_id=case_id, ok=False, error="Case not found"))
            else:
                found.append(record)
                items.append(BulkItemResult(case_id=case_id, ok=True))
        if not found:
            return BulkResult(operation=BulkOperation.EXPORT, items=items)

        file_path = Path(self.export_dir) / case_export_filename()
        try:
            export_cases_excel(cases=found, file_path=file_path)
        except OSError as exc:
            logger.exception("Case export failed")
            failed = [
                item if not item.ok else BulkItemResult(case_id=item.case_id, ok=False, error=str(exc))
                for item in items
            ]
            return BulkResult(operation=BulkOperation.EXPORT, items=failed)
        logger.info("Exported %d cases to %s", len(found), file_path)
        return BulkResult(operation=BulkOperation.EXPORT, items=items, artifact_path=str(file_path))

    def _report(self, result: BulkResult) -> None:
        if result.total == 0:
            return
        if not result.has_failures:
            level = "success"
        elif result.succeeded:
            level = "warning"
        else:
            level = "error"
        self.notifications.notify(
            f"Bulk {result.operation.value}",
            result.summary(),
            level=level,
            kind="bulk",
        )
