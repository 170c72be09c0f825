"""Repository interfaces and adapters for per-user saved search queries."""

from __future__ import annotations

from threading import Lock
from typing import Any, Protocol
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from backend.db.supabase_client import SupabaseClient
from shared.errors import ConflictError, StorageError
from shared.models import SavedQuery


_SAVED_QUERY_COLUMNS = "id,user_id,name,query,filters,created_at"


class SavedQueriesRepository(Protocol):
    def insert(self, saved_query: SavedQuery) -> SavedQuery:
        """Store a new saved query; raise ConflictError when the name is taken."""

    def list_for_user(self, user_id: str) -> list[SavedQuery]:
        """Return the user's saved queries in creation order."""

    def get(self, user_id: str, query_id: str) -> SavedQuery | None:
        """Return one saved query owned by the user, if any."""

    def delete(self, user_id: str, query_id: str) -> bool:
        """Delete one saved query owned by the user; return whether it existed."""


class InMemorySavedQueriesRepository:
    """In-memory saved queries repository used by tests/dev.

    The name check and the insert run under one lock so two concurrent saves
    of the same (user, name) cannot both succeed.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._saved_queries: list[SavedQuery] = []

    def insert(self, saved_query: SavedQuery) -> SavedQuery:
        with self._lock:
            for existing in self._saved_queries:
                if existing.user_id == saved_query.user_id and existing.name == saved_query.name:
                    raise ConflictError(
                        f"A saved query named '{saved_query.name}' already exists",
                        details={"name": saved_query.name},
                    )
            self._saved_queries.append(saved_query)
        return saved_query

    def list_for_user(self, user_id: str) -> list[SavedQuery]:
        with self._lock:
            owned = [query for query in self._saved_queries if query.user_id == user_id]
        return sorted(owned, key=lambda query: (query.created_at, query.id))

    def get(self, user_id: str, query_id: str) -> SavedQuery | None:
        with self._lock:
            for saved_query in self._saved_queries:
                if saved_query.id == query_id and saved_query.user_id == user_id:
                    return saved_query
        return None

    def delete(self, user_id: str, query_id: str) -> bool:
        with self._lock:
            kept = [
                query
                for query in self._saved_queries
                if not (query.id == query_id and query.user_id == user_id)
            ]
            deleted = len(kept) != len(self._saved_queries)
            self._saved_queries = kept
        return deleted


def _is_uuid_like(value: str) -> bool:
    try:
        UUID(value)
    except (ValueError, TypeError):
        return False
    return True


class SupabaseSavedQueriesRepository:
    """Supabase-backed saved queries.

    Uniqueness of (user_id, name) is enforced by a unique index on the table;
    PostgREST answers 409 on violation, which the client maps to ConflictError.
    """

    def __init__(self, client: SupabaseClient, *, table: str = "saved_queries") -> None:
        self._client = client
        self._table = table

    def _parse_row(self, row: dict[str, Any]) -> SavedQuery:
        try:
            return SavedQuery.model_validate(
                {
                    "id": str(row.get("id")),
                    "user_id": str(row.get("user_id")),
                    "name": row.get("name"),
                    "query": row.get("query") or "",
                    "filters": row.get("filters") or {},
                    "created_at": row.get("created_at"),
                }
            )
        except PydanticValidationError as exc:
            raise StorageError(f"Invalid saved query row: {exc.error_count()} error(s)") from exc

    def insert(self, saved_query: SavedQuery) -> SavedQuery:
        try:
            rows = self._client.post_rows(
                table=self._table,
                payload=saved_query.model_dump(mode="json"),
                query={"select": _SAVED_QUERY_COLUMNS},
            )
        except ConflictError as exc:
            raise ConflictError(
                f"A saved query named '{saved_query.name}' already exists",
                details={"name": saved_query.name},
            ) from exc
        if not rows:
            raise StorageError("Supabase did not return created saved query")
        return self._parse_row(rows[0])

    def list_for_user(self, user_id: str) -> list[SavedQuery]:
        rows, _ = self._client.get_rows(
            table=self._table,
            query=[
                ("user_id", f"eq.{user_id}"),
                ("select", _SAVED_QUERY_COLUMNS),
                ("order", "created_at.asc,id.asc"),
            ],
            with_count=False,
        )
        return [self._parse_row(row) for row in rows]

    def get(self, user_id: str, query_id: str) -> SavedQuery | None:
        if not _is_uuid_like(query_id):
            return None
        rows, _ = self._client.get_rows(
            table=self._table,
            query={
                "id": f"eq.{query_id}",
                "user_id": f"eq.{user_id}",
                "select": _SAVED_QUERY_COLUMNS,
                "limit": 1,
            },
            with_count=False,
        )
        if not rows:
            return None
        return self._parse_row(rows[0])

    def delete(self, user_id: str, query_id: str) -> bool:
        if not _is_uuid_like(query_id):
            return False
        rows = self._client.delete_rows(
            table=self._table,
            query={
                "id": f"eq.{query_id}",
                "user_id": f"eq.{user_id}",
                "select": "id",
            },
        )
        return bool(rows)
