"""Tests for per-user saved queries."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from itertools import count
from threading import Barrier

import pytest

from backend.repositories.saved_queries_repository import InMemorySavedQueriesRepository
from backend.search.saved_queries import SavedQueryStore
from shared.errors import ConflictError, NotFoundError, ValidationError
from shared.models import FilterSpec, TransactionCategory
from tests.fakes import USER_A, USER_B


def _store() -> SavedQueryStore:
    ticks = count()
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return SavedQueryStore(
        repository=InMemorySavedQueriesRepository(),
        now=lambda: start + timedelta(minutes=next(ticks)),
    )


def test_save_canonicalizes_filters_and_trims_fields() -> None:
    store = _store()

    saved = store.save(USER_A, "  Groceries ", " coffee ", {"categories": ["Food"], "tags": ["Weekly"]})

    assert saved.name == "Groceries"
    assert saved.query == "coffee"
    assert saved.user_id == USER_A
    assert saved.filters.categories == (TransactionCategory.FOOD,)
    assert saved.filters.tags == ("weekly",)
    assert store.get(USER_A, saved.id) == saved


def test_save_without_filters_uses_empty_filter() -> None:
    saved = _store().save(USER_A, "All", "")

    assert saved.filters == FilterSpec()


def test_duplicate_name_for_same_user_is_a_conflict() -> None:
    store = _store()
    store.save(USER_A, "Groceries", "food")

    with pytest.raises(ConflictError):
        store.save(USER_A, " Groceries", "other")

    assert len(store.list(USER_A)) == 1


def test_same_name_is_allowed_for_different_users() -> None:
    store = _store()

    store.save(USER_A, "Groceries", "food")
    store.save(USER_B, "Groceries", "food")

    assert len(store.list(USER_A)) == 1
    assert len(store.list(USER_B)) == 1


def test_concurrent_saves_of_same_name_yield_one_record() -> None:
    store = _store()
    workers = 8
    barrier = Barrier(workers)

    def _save(_: int) -> str:
        barrier.wait()
        try:
            store.save(USER_A, "Groceries", "food")
        except ConflictError:
            return "conflict"
        return "created"

    with ThreadPoolExecutor(max_workers=workers) as executor:
        outcomes = list(executor.map(_save, range(workers)))

    assert outcomes.count("created") == 1
    assert outcomes.count("conflict") == workers - 1
    assert len(store.list(USER_A)) == 1


def test_list_returns_creation_order_for_owner_only() -> None:
    store = _store()
    first = store.save(USER_A, "First", "a")
    store.save(USER_B, "Other", "b")
    second = store.save(USER_A, "Second", "c")

    assert [item.id for item in store.list(USER_A)] == [first.id, second.id]


def test_foreign_query_is_not_found_and_not_deleted() -> None:
    store = _store()
    saved = store.save(USER_A, "Groceries", "food")

    with pytest.raises(NotFoundError):
        store.get(USER_B, saved.id)
    assert store.delete(USER_B, saved.id) is False
    assert store.get(USER_A, saved.id) == saved


def test_delete_is_idempotent() -> None:
    store = _store()
    saved = store.save(USER_A, "Groceries", "food")

    assert store.delete(USER_A, saved.id) is True
    assert store.delete(USER_A, saved.id) is False
    with pytest.raises(NotFoundError):
        store.get(USER_A, saved.id)


@pytest.mark.parametrize(
    ("name", "query", "filters"),
    [
        ("", "food", None),
        ("   ", "food", None),
        ("x" * 101, "food", None),
        ("Groceries", "q" * 201, None),
        ("Groceries", 42, None),
        ("Groceries", "food", {"categories": ["groceries"]}),
        ("Groceries", "food", {"startDate": "2024-02-01", "endDate": "2024-01-01"}),
    ],
)
def test_invalid_saved_query_is_rejected(name: str, query: object, filters: object) -> None:
    store = _store()

    with pytest.raises(ValidationError):
        store.save(USER_A, name, query, filters)  # type: ignore[arg-type]

    assert store.list(USER_A) == []
