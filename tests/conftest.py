from __future__ import annotations

import asyncio
import os
import shutil
import tempfile
from collections.abc import Generator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

import pytest

# config creates its directories at import time
os.environ.setdefault("CASEDESK_DATA_DIR", tempfile.mkdtemp(prefix="casedesk_tests_"))

from casedesk.application.dto.auth_dto import Principal  # noqa: E402
from casedesk.application.exceptions import CaseNotFoundError, StoreError  # noqa: E402

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


class InMemoryCaseStore:
    """CaseStore double keeping rows in a list."""

    def __init__(self, rows: list[dict[str, Any]] | None = None, principal: Principal | None = None) -> None:
        self.rows: list[dict[str, Any]] = [dict(row) for row in rows or []]
        self.principal = principal
        self.query_error: Exception | None = None
        self.failing_ids: set[str] = set()
        self.gate: asyncio.Event | None = None
        self.query_calls = 0
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.blobs: dict[str, bytes] = {}

    async def current_principal(self) -> Principal | None:
        return self.principal

    async def query(self, table: str, *, visible_to: str, order_by: str = "created_at", descending: bool = True):
        self.query_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.query_error is not None:
            raise self.query_error
        visible = [dict(row) for row in self.rows if row.get("user_id") in (None, visible_to)]
        return sorted(visible, key=lambda row: str(row.get(order_by) or ""), reverse=descending)

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        stored = {"id": uuid4().hex, "created_at": NOW.isoformat(), **row}
        self.rows.append(stored)
        return dict(stored)

    async def update(self, table: str, row_id: str, patch: dict[str, Any]) -> None:
        if row_id in self.failing_ids:
            raise StoreError(f"update rejected for {row_id}", operation="update")
        for row in self.rows:
            if row["id"] == row_id:
                row.update(patch)
                self.updates.append((row_id, dict(patch)))
                return
        raise CaseNotFoundError(row_id)

    async def delete(self, table: str, row_id: str) -> None:
        if row_id in self.failing_ids:
            raise StoreError(f"delete rejected for {row_id}", operation="delete")
        before = len(self.rows)
        self.rows = [row for row in self.rows if row["id"] != row_id]
        if len(self.rows) == before:
            raise CaseNotFoundError(row_id)

    async def upload_blob(self, bucket: str, path: str, data: bytes) -> str:
        key = f"{bucket}/{path}"
        self.blobs[key] = data
        return key


def make_row(case_id: str, **overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": case_id,
        "patient_name": f"Patient {case_id}",
        "patient_id": f"P-{case_id}",
        "modality": "CT",
        "body_part": "Chest",
        "image_name": f"{case_id}.dcm",
        "status": "open",
        "severity_rating": 5,
        "confidence_score": 70,
        "findings": "No acute findings",
        "created_at": NOW.isoformat(),
        "user_id": None,
    }
    row.update(overrides)
    return row


@pytest.fixture
def principal() -> Principal:
    return Principal(user_id="user-1", login="radiologist", role="radiologist")


@pytest.fixture
def memory_store(principal: Principal) -> InMemoryCaseStore:
    return InMemoryCaseStore(principal=principal)


@pytest.fixture
def tmp_path() -> Generator[Path, None, None]:
    base = Path("pytest_artifacts")
    base.mkdir(parents=True, exist_ok=True)
    path = base / uuid4().hex
    path.mkdir(parents=True, exist_ok=True)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
