from __future__ import annotations

from typing import Any, Protocol

from casedesk.application.dto.auth_dto import Principal

Row = dict[str, Any]


class CaseStore(Protocol):
    """Remote persistence consumed by the engine.

    Implementations raise ``StoreError`` for any failed call and
    ``CaseNotFoundError`` when ``update``/``delete`` target an unknown id.
    """

    async def current_principal(self) -> Principal | None: ...

    async def query(
        self,
        table: str,
        *,
        visible_to: str,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> list[Row]:
        """Rows owned by ``visible_to`` or by nobody."""
        ...

    async def insert(self, table: str, row: Row) -> Row: ...

    async def update(self, table: str, row_id: str, patch: Row) -> None: ...

    async def delete(self, table: str, row_id: str) -> None: ...

    async def upload_blob(self, bucket: str, path: str, data: bytes) -> str: ...
