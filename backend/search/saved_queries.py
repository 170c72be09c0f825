"""Named (query, filter) pairs saved per user."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable
from uuid import uuid4

from backend.repositories.saved_queries_repository import SavedQueriesRepository
from backend.search.filter_builder import MAX_QUERY_LENGTH, build_filter
from shared.errors import NotFoundError, ValidationError
from shared.models import FilterSpec, SavedQuery


logger = logging.getLogger(__name__)


MAX_NAME_LENGTH = 100


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class SavedQueryStore:
    repository: SavedQueriesRepository
    now: Callable[[], datetime] = _utc_now

    def save(
        self,
        user_id: str,
        name: str,
        query: str,
        filters: FilterSpec | Mapping[str, object] | None = None,
    ) -> SavedQuery:
        """Create a saved query; a second save with the same name raises ConflictError."""

        if not user_id:
            raise ValidationError("user_id is required", details={"field": "user_id"})
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("name is required", details={"field": "name"})
        clean_name = name.strip()
        if len(clean_name) > MAX_NAME_LENGTH:
            raise ValidationError(
                f"name must be at most {MAX_NAME_LENGTH} characters",
                details={"field": "name"},
            )
        if query is not None and not isinstance(query, str):
            raise ValidationError("query must be a string", details={"field": "query"})
        clean_query = (query or "").strip()
        if len(clean_query) > MAX_QUERY_LENGTH:
            raise ValidationError(
                f"query must be at most {MAX_QUERY_LENGTH} characters",
                details={"field": "query"},
            )

        saved_query = SavedQuery(
            id=str(uuid4()),
            user_id=user_id,
            name=clean_name,
            query=clean_query,
            filters=build_filter(filters),
            created_at=self.now(),
        )
        stored = self.repository.insert(saved_query)
        logger.info("saved_query_created user_id=%s saved_query_id=%s", user_id, stored.id)
        return stored

    def list(self, user_id: str) -> list[SavedQuery]:
        return self.repository.list_for_user(user_id)

    def get(self, user_id: str, query_id: str) -> SavedQuery:
        """Return one saved query; absent and foreign records are both NotFoundError."""

        saved_query = self.repository.get(user_id, query_id)
        if saved_query is None:
            raise NotFoundError("Saved query not found", details={"query_id": query_id})
        return saved_query

    def delete(self, user_id: str, query_id: str) -> bool:
        deleted = self.repository.delete(user_id, query_id)
        logger.info(
            "saved_query_delete user_id=%s saved_query_id=%s deleted=%s",
            user_id,
            query_id,
            deleted,
        )
        return deleted
