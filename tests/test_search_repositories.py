"""Unit tests for saved query and search log Supabase adapters."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from backend.repositories.saved_queries_repository import SupabaseSavedQueriesRepository
from backend.repositories.search_log_repository import (
    InMemorySearchLogRepository,
    SupabaseSearchLogRepository,
)
from shared.errors import ConflictError, StorageError
from shared.models import DateRange, FilterSpec, SavedQuery, SearchLogEntry


_QUERY_ID = "3f2b8c1e-5a4d-4e6f-9b7a-1c2d3e4f5a6b"
_CREATED_AT = datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc)


class _ClientStub:
    def __init__(self, rows: list[dict[str, object]] | None = None) -> None:
        self.rows = rows or []
        self.calls: list[tuple[str, dict[str, object]]] = []

    def get_rows(self, *, table, query, with_count, timeout=None):
        self.calls.append(("get", {"table": table, "query": query}))
        return self.rows, None

    def post_rows(self, *, table, payload, query=None, timeout=None):
        self.calls.append(("post", {"table": table, "payload": payload, "query": query}))
        return self.rows

    def delete_rows(self, *, table, query, timeout=None):
        self.calls.append(("delete", {"table": table, "query": query}))
        return self.rows


class _ConflictClient(_ClientStub):
    def post_rows(self, *, table, payload, query=None, timeout=None):
        raise ConflictError("Supabase conflict on saved_queries")


def _saved_query() -> SavedQuery:
    return SavedQuery(
        id=_QUERY_ID,
        user_id="u1",
        name="Groceries",
        query="coffee",
        filters=FilterSpec(tags=("weekly",)),
        created_at=_CREATED_AT,
    )


def _saved_row() -> dict[str, object]:
    return {
        "id": _QUERY_ID,
        "user_id": "u1",
        "name": "Groceries",
        "query": "coffee",
        "filters": {"tags": ["weekly"]},
        "created_at": "2024-01-02T09:00:00+00:00",
    }


def test_insert_posts_json_payload_and_parses_row() -> None:
    client = _ClientStub(rows=[_saved_row()])
    repository = SupabaseSavedQueriesRepository(client=client)

    stored = repository.insert(_saved_query())

    assert stored == _saved_query()
    method, call = client.calls[0]
    assert method == "post"
    assert call["table"] == "saved_queries"
    assert call["payload"]["filters"]["tags"] == ["weekly"]
    assert call["payload"]["created_at"] == "2024-01-02T09:00:00Z"


def test_insert_conflict_names_the_duplicate() -> None:
    repository = SupabaseSavedQueriesRepository(client=_ConflictClient())

    with pytest.raises(ConflictError, match="Groceries"):
        repository.insert(_saved_query())


def test_insert_without_returned_row_is_a_storage_error() -> None:
    repository = SupabaseSavedQueriesRepository(client=_ClientStub(rows=[]))

    with pytest.raises(StorageError):
        repository.insert(_saved_query())


def test_get_and_delete_are_scoped_to_the_user() -> None:
    client = _ClientStub(rows=[_saved_row()])
    repository = SupabaseSavedQueriesRepository(client=client)

    assert repository.get("u1", _QUERY_ID) == _saved_query()
    assert repository.delete("u1", _QUERY_ID) is True

    get_query = client.calls[0][1]["query"]
    delete_query = client.calls[1][1]["query"]
    assert get_query["user_id"] == "eq.u1"
    assert delete_query == {"id": f"eq.{_QUERY_ID}", "user_id": "eq.u1", "select": "id"}


def test_non_uuid_ids_never_reach_storage() -> None:
    client = _ClientStub(rows=[_saved_row()])
    repository = SupabaseSavedQueriesRepository(client=client)

    assert repository.get("u1", "not-a-uuid") is None
    assert repository.delete("u1", "not-a-uuid") is False
    assert client.calls == []


def test_list_for_user_orders_by_creation() -> None:
    client = _ClientStub(rows=[_saved_row()])
    repository = SupabaseSavedQueriesRepository(client=client)

    assert repository.list_for_user("u1") == [_saved_query()]
    assert ("order", "created_at.asc,id.asc") in client.calls[0][1]["query"]


def test_corrupt_saved_query_row_is_a_storage_error() -> None:
    repository = SupabaseSavedQueriesRepository(client=_ClientStub(rows=[{**_saved_row(), "name": ""}]))

    with pytest.raises(StorageError):
        repository.list_for_user("u1")


def _log_entry(executed_at: datetime) -> SearchLogEntry:
    return SearchLogEntry(id="log-1", user_id="u1", query="coffee", result_count=2, executed_at=executed_at)


def test_search_log_list_entries_pushes_down_date_range() -> None:
    client = _ClientStub(
        rows=[
            {
                "id": "log-1",
                "user_id": "u1",
                "query": "coffee",
                "filters": {},
                "result_count": 2,
                "executed_at": "2024-01-05T10:00:00Z",
            }
        ]
    )
    repository = SupabaseSearchLogRepository(client=client)

    entries = repository.list_entries("u1", DateRange(start=date(2024, 1, 1), end=date(2024, 1, 31)))

    assert entries == [_log_entry(datetime(2024, 1, 5, 10, 0, tzinfo=timezone.utc))]
    query = client.calls[0][1]["query"]
    assert ("executed_at", "gte.2024-01-01T00:00:00+00:00") in query
    assert ("executed_at", "lte.2024-01-31T23:59:59.999999+00:00") in query


def test_search_log_record_posts_entry() -> None:
    client = _ClientStub()
    repository = SupabaseSearchLogRepository(client=client)

    repository.record(_log_entry(datetime(2024, 1, 5, 10, 0, tzinfo=timezone.utc)))

    method, call = client.calls[0]
    assert method == "post"
    assert call["table"] == "search_log"
    assert call["payload"]["query"] == "coffee"


def test_in_memory_search_log_filters_user_and_range() -> None:
    repository = InMemorySearchLogRepository()
    repository.record(_log_entry(datetime(2024, 1, 5, tzinfo=timezone.utc)))
    repository.record(_log_entry(datetime(2024, 2, 5, tzinfo=timezone.utc)))

    assert len(repository.list_entries("u1")) == 2
    assert len(repository.list_entries("u1", DateRange(end=date(2024, 1, 31)))) == 1
    assert repository.list_entries("u2") == []


def test_search_log_list_entries_reads_every_page() -> None:
    rows = [
        {
            "id": f"log-{index}",
            "user_id": "u1",
            "query": "coffee",
            "filters": {},
            "result_count": 1,
            "executed_at": f"2024-01-0{index + 1}T10:00:00Z",
        }
        for index in range(3)
    ]
    offsets: list[int] = []

    class _PagedClient:
        def get_rows(self, *, table, query, with_count, timeout=None):
            params = dict(query)
            offsets.append(int(params["offset"]))
            start = int(params["offset"])
            return rows[start : start + int(params["limit"])], None

    repository = SupabaseSearchLogRepository(client=_PagedClient(), page_size=2)

    entries = repository.list_entries("u1")

    assert [entry.id for entry in entries] == ["log-0", "log-1", "log-2"]
    assert offsets == [0, 2]
