from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError

from casedesk.application.dto.auth_dto import Principal
from casedesk.application.exceptions import CaseNotFoundError, StoreError
from casedesk.application.store_contract import Row
from casedesk.domain.constants import MEDICAL_CASES_TABLE
from casedesk.infrastructure.db.repositories.medical_case_repo import MedicalCaseRepository, case_to_row
from casedesk.infrastructure.db.session import SessionScope, session_scope
from casedesk.infrastructure.storage.blob_storage import BlobStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SqlCaseStore:
    """Case store backed by the local SQL database and blob directory.

    SQLAlchemy work is blocking, so each call runs in a worker thread and the
    event loop only sees the finished rows.
    """

    def __init__(
        self,
        session_factory: SessionScope = session_scope,
        blobs: BlobStorage | None = None,
        principal: Principal | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.blobs = blobs or BlobStorage()
        self.repo = MedicalCaseRepository()
        self._principal = principal

    def set_principal(self, principal: Principal | None) -> None:
        self._principal = principal

    async def current_principal(self) -> Principal | None:
        return self._principal

    async def query(
        self,
        table: str,
        *,
        visible_to: str,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> list[Row]:
        _check_table(table)

        def _query() -> list[Row]:
            with self.session_factory() as session:
                cases = self.repo.list_visible(
                    session,
                    owner_id=visible_to,
                    order_by=order_by,
                    descending=descending,
                )
                return [case_to_row(case) for case in cases]

        return await self._run("query", _query)

    async def insert(self, table: str, row: Row) -> Row:
        _check_table(table)

        def _insert() -> Row:
            with self.session_factory() as session:
                case = self.repo.create(session, dict(row))
                return case_to_row(case)

        return await self._run("insert", _insert)

    async def update(self, table: str, row_id: str, patch: Row) -> None:
        _check_table(table)

        def _update() -> None:
            with self.session_factory() as session:
                case = self.repo.get_by_id(session, row_id)
                if case is None:
                    raise CaseNotFoundError(row_id)
                self.repo.update(session, case, {**patch, "updated_at": datetime.now(UTC)})

        await self._run("update", _update)

    async def delete(self, table: str, row_id: str) -> None:
        _check_table(table)

        def _delete() -> None:
            with self.session_factory() as session:
                case = self.repo.get_by_id(session, row_id)
                if case is None:
                    raise CaseNotFoundError(row_id)
                self.repo.delete(session, case)

        await self._run("delete", _delete)

    async def upload_blob(self, bucket: str, path: str, data: bytes) -> str:
        try:
            return await asyncio.to_thread(self.blobs.put, bucket, path, data)
        except (OSError, ValueError) as exc:
            raise StoreError(f"Blob upload failed: {exc}", operation="upload_blob") from exc

    async def _run(self, operation: str, func: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(func)
        except SQLAlchemyError as exc:
            logger.exception("Store %s failed", operation)
            raise StoreError(f"Store {operation} failed: {exc}", operation=operation) from exc


def _check_table(table: str) -> None:
    if table != MEDICAL_CASES_TABLE:
        raise StoreError(f"Unknown table: {table}", operation="table")
