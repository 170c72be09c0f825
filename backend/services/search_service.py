"""Search service facade used by the HTTP layer.

Accepts primitive payloads, validates them through the filter builder and
delegates to the search components. Every error raised here is a
`shared.errors.SearchError` subclass.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable
from uuid import uuid4

from backend.repositories.search_log_repository import SearchLogRepository
from backend.repositories.transactions_repository import TransactionsRepository
from backend.search.analytics import SearchAnalyticsAggregator
from backend.search.filter_builder import build_filter, build_search_request
from backend.search.query_executor import QueryExecutor
from backend.search.saved_queries import SavedQueryStore
from backend.search.suggestions import SuggestionEngine
from shared import config
from shared.errors import SearchError, StorageError, ValidationError
from shared.models import (
    AnalyticsInterval,
    FilterOptions,
    FilterSpec,
    PopularQuery,
    SavedQuery,
    SearchAnalytics,
    SearchHit,
    SearchLogEntry,
    SearchRequest,
    SearchResult,
    SuggestionCandidate,
)
from shared.models.search import normalize_tag


logger = logging.getLogger(__name__)


MAX_QUICK_QUERY_LENGTH = 100
MAX_QUICK_LIMIT = 20


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class SearchService:
    transactions_repository: TransactionsRepository
    search_log_repository: SearchLogRepository
    query_executor: QueryExecutor
    suggestion_engine: SuggestionEngine
    saved_query_store: SavedQueryStore
    analytics_aggregator: SearchAnalyticsAggregator
    now: Callable[[], datetime] = field(default=_utc_now)

    def _timeout(self, timeout: float | None) -> float:
        return timeout if timeout is not None else config.search_timeout_seconds()

    def _record_search(self, user_id: str, request: SearchRequest, result: SearchResult) -> None:
        if not request.query or not config.search_analytics_enabled():
            return
        entry = SearchLogEntry(
            id=str(uuid4()),
            user_id=user_id,
            query=request.query,
            filters=request.filters,
            result_count=result.total,
            executed_at=self.now(),
        )
        try:
            self.search_log_repository.record(entry)
        except Exception:
            logger.exception("search_log_record_failed user_id=%s", user_id)

    def _run(self, user_id: str, request: SearchRequest, timeout: float | None) -> SearchResult:
        result = self.query_executor.execute(user_id, request, timeout=self._timeout(timeout))
        self._record_search(user_id, request, result)
        return result

    def search(
        self,
        user_id: str,
        payload: Mapping[str, object] | None,
        *,
        timeout: float | None = None,
    ) -> SearchResult:
        request = build_search_request(payload)
        return self._run(user_id, request, timeout)

    def quick_search(
        self,
        user_id: str,
        query: str,
        *,
        limit: int = 10,
        timeout: float | None = None,
    ) -> list[SearchHit]:
        """Return the first `limit` hits for a non-empty query."""

        text = (query or "").strip() if isinstance(query, str) else None
        if not text:
            raise ValidationError("q is required", details={"field": "q"})
        if len(text) > MAX_QUICK_QUERY_LENGTH:
            raise ValidationError(
                f"q must be at most {MAX_QUICK_QUERY_LENGTH} characters",
                details={"field": "q"},
            )
        if isinstance(limit, bool) or not 1 <= limit <= MAX_QUICK_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_QUICK_LIMIT}", details={"field": "limit"})

        request = SearchRequest(query=text, page=1, limit=limit)
        return self._run(user_id, request, timeout).items

    def suggest(
        self,
        user_id: str,
        prefix: str,
        *,
        limit: int | None = None,
        timeout: float | None = None,
    ) -> list[SuggestionCandidate]:
        return self.suggestion_engine.suggest(
            user_id,
            prefix,
            limit=limit,
            timeout=self._timeout(timeout),
        )

    def save_query(self, user_id: str, payload: Mapping[str, object]) -> SavedQuery:
        if not isinstance(payload, Mapping):
            raise ValidationError("Invalid saved query payload: expected an object")
        filters = payload.get("filters")
        if filters is not None and not isinstance(filters, Mapping):
            raise ValidationError("filters must be an object", details={"field": "filters"})
        return self.saved_query_store.save(
            user_id,
            payload.get("name"),  # type: ignore[arg-type]
            payload.get("query"),  # type: ignore[arg-type]
            filters,  # type: ignore[arg-type]
        )

    def list_saved_queries(self, user_id: str) -> list[SavedQuery]:
        return self.saved_query_store.list(user_id)

    def delete_saved_query(self, user_id: str, query_id: str) -> bool:
        return self.saved_query_store.delete(user_id, query_id)

    def run_saved_query(
        self,
        user_id: str,
        query_id: str,
        *,
        page: int = 1,
        limit: int = 20,
        timeout: float | None = None,
    ) -> SearchResult:
        """Execute a saved query; unknown or foreign ids raise NotFoundError."""

        saved_query = self.saved_query_store.get(user_id, query_id)
        request = build_search_request(
            {
                "query": saved_query.query,
                "filters": saved_query.filters.model_dump(mode="json"),
                "page": page,
                "limit": limit,
            }
        )
        return self._run(user_id, request, timeout)

    def filter_options(self, user_id: str, *, timeout: float | None = None) -> FilterOptions:
        """Return the categories, tags, amount and date bounds present in the user's corpus."""

        if not user_id:
            raise ValidationError("user_id is required", details={"field": "user_id"})
        try:
            transactions = self.transactions_repository.find_by_user(
                user_id,
                FilterSpec(),
                timeout=self._timeout(timeout),
            )
        except SearchError:
            raise
        except Exception as exc:
            raise StorageError(f"Transaction lookup failed: {exc}") from exc

        owned = [transaction for transaction in transactions if transaction.user_id == user_id]
        if not owned:
            return FilterOptions()

        amounts = [abs(transaction.amount) for transaction in owned]
        dates = [transaction.date for transaction in owned]
        tags = {normalize_tag(tag) for transaction in owned for tag in transaction.tags if normalize_tag(tag)}
        return FilterOptions(
            categories=sorted({transaction.category for transaction in owned}, key=lambda item: item.value),
            tags=sorted(tags),
            min_amount=min(amounts),
            max_amount=max(amounts),
            first_date=min(dates),
            last_date=max(dates),
        )

    def analytics(
        self,
        user_id: str,
        *,
        start_date: str | None = None,
        end_date: str | None = None,
        interval: str | AnalyticsInterval = AnalyticsInterval.DAY,
        top_limit: int = 10,
    ) -> SearchAnalytics:
        date_range = build_filter({"start_date": start_date, "end_date": end_date}).date_range
        try:
            resolved_interval = AnalyticsInterval(interval)
        except ValueError as exc:
            raise ValidationError(
                f"Invalid interval '{interval}'. Expected one of: day, week, month",
                details={"field": "interval"},
            ) from exc
        return self.analytics_aggregator.analytics(
            user_id,
            date_range,
            interval=resolved_interval,
            top_limit=top_limit,
        )

    def popular_queries(self, user_id: str, *, limit: int = 10) -> list[PopularQuery]:
        return self.analytics_aggregator.popular_queries(user_id, limit)
