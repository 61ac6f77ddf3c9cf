from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest
from conftest import InMemoryCaseStore, make_row

from casedesk.application.dto.auth_dto import Principal
from casedesk.application.dto.case_dto import CaseCreateRequest, CaseUpdateRequest
from casedesk.application.exceptions import AuthError, CaseNotFoundError, StoreError
from casedesk.application.services.case_repository import CaseRepository
from casedesk.application.services.notification_service import NotificationService
from casedesk.domain.constants import RepositoryState

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def make_repository(store: InMemoryCaseStore, notifications: NotificationService | None = None) -> CaseRepository:
    return CaseRepository(
        store,
        notifications or NotificationService(),
        poll_interval=60,
        patient_id_strategy="stable",
        blob_bucket="medical-images",
        clock=lambda: NOW,
    )


def test_fetch_all_transforms_visible_rows_newest_first(memory_store: InMemoryCaseStore) -> None:
    memory_store.rows = [
        make_row("old", created_at="2024-05-01T08:00:00+00:00"),
        make_row("mine", user_id="user-1", severity_rating=9),
        make_row("foreign", user_id="user-2"),
    ]
    repository = make_repository(memory_store)

    cases = asyncio.run(repository.fetch_all())

    assert [case.id for case in cases] == ["mine", "old"]
    assert cases[0].priority == "critical"
    assert cases[0].source == "manual"
    assert repository.state is RepositoryState.READY
    assert repository.version == 1


def test_fetch_all_without_principal_yields_empty_collection(memory_store: InMemoryCaseStore) -> None:
    memory_store.principal = None
    memory_store.rows = [make_row("a")]
    notifications = NotificationService()
    repository = make_repository(memory_store, notifications)

    cases = asyncio.run(repository.fetch_all())

    assert cases == ()
    assert repository.state is RepositoryState.READY
    assert isinstance(repository.last_error, AuthError)
    assert notifications.history[-1].level == "warning"


def test_refetch_picks_up_sign_out_in_store(memory_store: InMemoryCaseStore, principal: Principal) -> None:
    memory_store.rows = [make_row("mine", user_id="user-1")]
    memory_store.principal = None
    repository = make_repository(memory_store)

    async def _scenario() -> None:
        await repository.fetch_all(principal)
        assert [case.id for case in repository.cases] == ["mine"]
        await repository.refetch()

    asyncio.run(_scenario())

    assert repository.cases == ()
    assert isinstance(repository.last_error, AuthError)
    assert repository.state is RepositoryState.READY


def test_set_principal_none_empties_collection(memory_store: InMemoryCaseStore, principal: Principal) -> None:
    memory_store.rows = [make_row("mine", user_id="user-1")]
    repository = make_repository(memory_store)
    seen: list[int] = []
    repository.subscribe(lambda cases: seen.append(len(cases)))

    asyncio.run(repository.fetch_all())
    repository.set_principal(None)

    assert repository.cases == ()
    assert repository.state is RepositoryState.IDLE
    assert seen == [1, 0]


def test_fetch_in_flight_at_sign_out_is_discarded(memory_store: InMemoryCaseStore) -> None:
    memory_store.rows = [make_row("mine", user_id="user-1")]
    repository = make_repository(memory_store)

    async def _scenario() -> None:
        memory_store.gate = asyncio.Event()
        fetch = asyncio.ensure_future(repository.fetch_all())
        await asyncio.sleep(0)
        repository.set_principal(None)
        memory_store.gate.set()
        await fetch

    asyncio.run(_scenario())

    assert repository.cases == ()
    assert repository.state is RepositoryState.IDLE


def test_create_case_uses_store_session_after_sign_out(memory_store: InMemoryCaseStore, principal: Principal) -> None:
    repository = make_repository(memory_store)
    request = CaseCreateRequest(image_name="x.png", body_part="Chest")

    async def _scenario() -> None:
        await repository.fetch_all(principal)
        memory_store.principal = None
        await repository.create_case(request)

    with pytest.raises(AuthError):
        asyncio.run(_scenario())

    assert memory_store.rows == []


def test_store_error_keeps_last_good_collection(memory_store: InMemoryCaseStore) -> None:
    memory_store.rows = [make_row("a"), make_row("b")]
    notifications = NotificationService()
    repository = make_repository(memory_store, notifications)

    async def _scenario() -> None:
        await repository.fetch_all()
        memory_store.query_error = StoreError("connection reset", operation="query")
        await repository.refetch()

    asyncio.run(_scenario())

    assert [case.id for case in repository.cases] == ["a", "b"]
    assert repository.state is RepositoryState.ERROR
    assert isinstance(repository.last_error, StoreError)
    assert notifications.history[-1].level == "error"


def test_unexpected_store_exception_is_wrapped(memory_store: InMemoryCaseStore) -> None:
    memory_store.query_error = RuntimeError("socket closed")
    repository = make_repository(memory_store)

    asyncio.run(repository.fetch_all())

    assert isinstance(repository.last_error, StoreError)
    assert "socket closed" in str(repository.last_error)


def test_add_case_prepends_and_replaces_duplicate(memory_store: InMemoryCaseStore) -> None:
    memory_store.rows = [make_row("a"), make_row("b")]
    repository = make_repository(memory_store)
    asyncio.run(repository.fetch_all())

    repository.add_case(make_row("c"))
    repository.add_case(make_row("a", severity_rating=10))

    assert [case.id for case in repository.cases] == ["a", "c", "b"]
    assert repository.get("a").priority == "critical"


def test_update_case_unknown_id_is_noop(memory_store: InMemoryCaseStore) -> None:
    repository = make_repository(memory_store)
    record = repository.add_case(make_row("a"))
    repository.remove_case("a")
    version = repository.version

    assert repository.update_case(record) is False
    assert repository.version == version


def test_subscribe_and_unsubscribe(memory_store: InMemoryCaseStore) -> None:
    repository = make_repository(memory_store)
    seen: list[int] = []
    unsubscribe = repository.subscribe(lambda cases: seen.append(len(cases)))

    repository.add_case(make_row("a"))
    unsubscribe()
    repository.add_case(make_row("b"))

    assert seen == [1]


def test_refetch_joins_fetch_in_flight(memory_store: InMemoryCaseStore) -> None:
    memory_store.rows = [make_row("a")]
    repository = make_repository(memory_store)

    async def _scenario() -> None:
        memory_store.gate = asyncio.Event()
        first = asyncio.create_task(repository.refetch())
        second = asyncio.create_task(repository.refetch())
        await asyncio.sleep(0)
        memory_store.gate.set()
        await asyncio.gather(first, second)

    asyncio.run(_scenario())

    assert memory_store.query_calls == 1
    assert [case.id for case in repository.cases] == ["a"]


def test_poll_tick_skipped_while_refetch_in_flight(memory_store: InMemoryCaseStore) -> None:
    memory_store.rows = [make_row("a")]
    repository = make_repository(memory_store)

    async def _scenario() -> None:
        memory_store.gate = asyncio.Event()
        repository.start_polling(interval=0.01)
        await asyncio.sleep(0.08)
        assert repository.is_polling
        assert memory_store.query_calls == 1
        repository.stop_polling()
        memory_store.gate.set()
        await asyncio.sleep(0.02)

    asyncio.run(_scenario())

    assert not repository.is_polling
    assert [case.id for case in repository.cases] == ["a"]


def test_close_discards_late_fetch_result(memory_store: InMemoryCaseStore) -> None:
    memory_store.rows = [make_row("a")]
    repository = make_repository(memory_store)

    async def _scenario() -> None:
        await repository.fetch_all()
        memory_store.rows = [make_row("b")]
        memory_store.gate = asyncio.Event()
        pending = asyncio.create_task(repository.refetch())
        await asyncio.sleep(0)
        repository.close()
        memory_store.gate.set()
        await pending

    asyncio.run(_scenario())

    assert [case.id for case in repository.cases] == ["a"]


def test_create_case_uploads_blob_and_prepends(memory_store: InMemoryCaseStore) -> None:
    memory_store.rows = [make_row("a")]
    notifications = NotificationService()
    repository = make_repository(memory_store, notifications)
    request = CaseCreateRequest(image_name="chest.png", body_part="Chest", patient_name="Ann Lee", severity_rating=8)

    async def _scenario():
        await repository.fetch_all()
        return await repository.create_case(request, image=b"\x89PNG", filename="chest.png")

    record = asyncio.run(_scenario())

    assert repository.cases[0] is record
    assert record.priority == "critical"
    assert record.user_id == "user-1"
    assert record.source == "manual"
    (blob_key,) = memory_store.blobs
    assert blob_key.startswith("medical-images/user-1/")
    assert record.storage_path == blob_key
    assert notifications.history[-1].title == "New case added"


def test_create_case_requires_principal(memory_store: InMemoryCaseStore) -> None:
    memory_store.principal = None
    repository = make_repository(memory_store)
    request = CaseCreateRequest(image_name="x.png", body_part="Chest")

    with pytest.raises(AuthError):
        asyncio.run(repository.create_case(request))

    assert memory_store.rows == []


def test_save_update_writes_store_then_local(memory_store: InMemoryCaseStore) -> None:
    memory_store.rows = [make_row("a", severity_rating=2)]
    repository = make_repository(memory_store)

    async def _scenario():
        await repository.fetch_all()
        return await repository.save_update("a", CaseUpdateRequest(severity_rating=9, status="in-progress"))

    updated = asyncio.run(_scenario())

    assert memory_store.updates == [("a", {"severity_rating": 9, "status": "in-progress"})]
    assert updated.priority == "critical"
    assert repository.get("a").status == "in-progress"


def test_save_update_unknown_case(memory_store: InMemoryCaseStore) -> None:
    repository = make_repository(memory_store)

    with pytest.raises(CaseNotFoundError):
        asyncio.run(repository.save_update("missing", CaseUpdateRequest(status="open")))


def test_archive_and_delete_remove_locally(memory_store: InMemoryCaseStore) -> None:
    memory_store.rows = [make_row("a"), make_row("b")]
    repository = make_repository(memory_store)

    async def _scenario() -> None:
        await repository.fetch_all()
        await repository.archive_case("a")
        await repository.delete_case("b")

    asyncio.run(_scenario())

    assert repository.cases == ()
    assert memory_store.updates == [("a", {"is_archived": True})]
    assert [row["id"] for row in memory_store.rows] == ["a"]
