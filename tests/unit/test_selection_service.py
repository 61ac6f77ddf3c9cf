from __future__ import annotations

import asyncio
from datetime import UTC, datetime

from conftest import InMemoryCaseStore, make_row

from casedesk.application.services.selection_service import SelectionService
from casedesk.container import build_container
from casedesk.domain.rules.case_transform import transform_case

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def _view(*case_ids: str, **raw):
    return [transform_case(make_row(case_id, **raw), now=NOW) for case_id in case_ids]


def test_toggle_select_and_deselect() -> None:
    selection = SelectionService()

    assert selection.toggle("a") is True
    selection.select("b")
    assert selection.toggle("a") is False
    selection.deselect("missing")

    assert selection.ids == frozenset({"b"})
    assert "b" in selection
    assert len(selection) == 1


def test_select_all_takes_only_visible_cases() -> None:
    selection = SelectionService()
    selection.select("hidden")

    chosen = selection.select_all(_view("a", "b"))

    assert chosen == frozenset({"a", "b"})


def test_bind_view_prunes_ids_no_longer_visible() -> None:
    selection = SelectionService()
    selection.select_all(_view("a", "b", "c"))

    remaining = selection.bind_view(_view("b", "c", "d"))

    assert remaining == frozenset({"b", "c"})


def test_summary_counts_status_and_priority() -> None:
    view = _view("a", "b", severity_rating=9) + _view("c", status="in-progress")
    selection = SelectionService()
    selection.select_all(view)
    selection.deselect("b")

    summary = selection.summary(view)

    assert summary.count == 2
    assert summary.status_counts == {"open": 1, "in-progress": 1}
    assert summary.priority_counts == {"critical": 1, "medium": 1}


def test_container_clears_selection_on_view_change(memory_store: InMemoryCaseStore) -> None:
    memory_store.rows = [make_row("a"), make_row("b", severity_rating=9)]
    container = build_container(memory_store)

    async def _scenario() -> None:
        await container.repository.fetch_all()
        container.selection_service.select_all(container.visible_cases())
        assert len(container.selection_service) == 2

        container.filter_service.toggle("priorities", "critical")
        assert len(container.selection_service) == 0

        container.selection_service.select_all(container.visible_cases())
        container.filter_service.set_search("patient")
        assert len(container.selection_service) == 0

        container.selection_service.select("b")
        container.filter_service.set_sort("oldest")
        assert len(container.selection_service) == 0

    asyncio.run(_scenario())
    container.shutdown()


def test_container_prunes_selection_after_refresh(memory_store: InMemoryCaseStore) -> None:
    memory_store.rows = [make_row("a"), make_row("b")]
    container = build_container(memory_store)

    async def _scenario() -> None:
        await container.repository.fetch_all()
        container.selection_service.select_all(container.visible_cases())
        memory_store.rows = [make_row("b")]
        await container.repository.refetch()

    asyncio.run(_scenario())

    assert container.selection_service.ids == frozenset({"b"})
    container.shutdown()


def test_summary_uses_priority_shown_from_findings() -> None:
    view = _view("a", severity_rating=2, findings="Severity: 9") + _view("b", severity_rating=2)
    selection = SelectionService()
    selection.select_all(view)

    summary = selection.summary(view)

    assert summary.priority_counts == {"critical": 1, "low": 1}


def test_bulk_on_filtered_selection_never_touches_hidden_cases(memory_store: InMemoryCaseStore) -> None:
    visible_ids = [f"crit{index}" for index in range(5)]
    hidden_ids = ["low0", "low1"]
    memory_store.rows = [make_row(case_id, severity_rating=9) for case_id in visible_ids] + [
        make_row(case_id, severity_rating=1) for case_id in hidden_ids
    ]
    container = build_container(memory_store)

    async def _scenario():
        await container.repository.fetch_all()
        container.filter_service.toggle("priorities", "critical")
        container.selection_service.select_all(container.visible_cases())
        return await container.batch_service.dispatch_bulk(
            "assign", container.selection_service.ids, "dr.grey"
        )

    result = asyncio.run(_scenario())

    assert sorted(result.succeeded) == visible_ids
    assert result.summary() == "5 of 5 succeeded"
    assert {row_id for row_id, _patch in memory_store.updates} == set(visible_ids)
    for case_id in hidden_ids:
        assert container.repository.get(case_id).assigned_to is None
    container.shutdown()
