"""Search activity log adapters consumed by the analytics aggregator."""

from __future__ import annotations

from datetime import datetime, time, timezone
from threading import Lock
from typing import Any, Protocol

from pydantic import ValidationError as PydanticValidationError

from backend.db.supabase_client import DEFAULT_PAGE_SIZE, SupabaseClient, fetch_all_rows
from shared.errors import StorageError
from shared.models import DateRange, SearchLogEntry


_SEARCH_LOG_COLUMNS = "id,user_id,query,filters,result_count,executed_at"


def _in_range(entry: SearchLogEntry, date_range: DateRange | None) -> bool:
    if date_range is None:
        return True
    return date_range.contains(entry.executed_at.date())


class SearchLogRepository(Protocol):
    def record(self, entry: SearchLogEntry) -> None:
        """Append one executed search to the log."""

    def list_entries(self, user_id: str, date_range: DateRange | None = None) -> list[SearchLogEntry]:
        """Return the user's log entries, optionally limited to a date range."""


class InMemorySearchLogRepository:
    def __init__(self) -> None:
        self._lock = Lock()
        self._entries: list[SearchLogEntry] = []

    def record(self, entry: SearchLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def list_entries(self, user_id: str, date_range: DateRange | None = None) -> list[SearchLogEntry]:
        with self._lock:
            snapshot = list(self._entries)
        return [
            entry
            for entry in snapshot
            if entry.user_id == user_id and _in_range(entry, date_range)
        ]


class SupabaseSearchLogRepository:
    """Supabase-backed search log stored in `public.search_log`."""

    def __init__(
        self,
        client: SupabaseClient,
        *,
        table: str = "search_log",
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._client = client
        self._table = table
        self._page_size = page_size

    def record(self, entry: SearchLogEntry) -> None:
        self._client.post_rows(table=self._table, payload=entry.model_dump(mode="json"))

    def list_entries(self, user_id: str, date_range: DateRange | None = None) -> list[SearchLogEntry]:
        query: list[tuple[str, str | int]] = [("user_id", f"eq.{user_id}")]
        if date_range is not None:
            if date_range.start is not None:
                start = datetime.combine(date_range.start, time.min, tzinfo=timezone.utc)
                query.append(("executed_at", f"gte.{start.isoformat()}"))
            if date_range.end is not None:
                end = datetime.combine(date_range.end, time.max, tzinfo=timezone.utc)
                query.append(("executed_at", f"lte.{end.isoformat()}"))
        query.extend([("select", _SEARCH_LOG_COLUMNS), ("order", "executed_at.asc,id.asc")])

        rows = fetch_all_rows(self._client, table=self._table, query=query, page_size=self._page_size)
        return [self._parse_row(row) for row in rows]

    @staticmethod
    def _parse_row(row: dict[str, Any]) -> SearchLogEntry:
        try:
            return SearchLogEntry.model_validate(
                {
                    "id": str(row.get("id")),
                    "user_id": str(row.get("user_id")),
                    "query": row.get("query") or "",
                    "filters": row.get("filters") or {},
                    "result_count": row.get("result_count") or 0,
                    "executed_at": row.get("executed_at"),
                }
            )
        except PydanticValidationError as exc:
            raise StorageError(f"Invalid search log row: {exc.error_count()} error(s)") from exc
