"""Aggregations over the search activity log."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from backend.repositories.search_log_repository import SearchLogRepository
from shared.errors import SearchError, StorageError, ValidationError
from shared.models import (
    AnalyticsInterval,
    DateRange,
    PopularQuery,
    QueryVolumePoint,
    SearchAnalytics,
    SearchAnalyticsSummary,
    SearchLogEntry,
)


logger = logging.getLogger(__name__)


MAX_POPULAR_QUERIES = 50


def period_start(moment: datetime, interval: AnalyticsInterval) -> date:
    """Return the first day of the bucket containing `moment`."""

    day = moment.date()
    if interval == AnalyticsInterval.WEEK:
        return day - timedelta(days=day.weekday())
    if interval == AnalyticsInterval.MONTH:
        return day.replace(day=1)
    return day


def _validate_limit(limit: int, field_name: str) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_POPULAR_QUERIES:
        raise ValidationError(
            f"{field_name} must be between 1 and {MAX_POPULAR_QUERIES}",
            details={"field": field_name},
        )
    return limit


def rank_queries(entries: list[SearchLogEntry]) -> list[PopularQuery]:
    """Group entries by query text; most used first, then most recently used."""

    grouped: dict[str, PopularQuery] = {}
    for entry in entries:
        current = grouped.get(entry.query)
        if current is None:
            grouped[entry.query] = PopularQuery(query=entry.query, count=1, last_used_at=entry.executed_at)
            continue
        current.count += 1
        if entry.executed_at > current.last_used_at:
            current.last_used_at = entry.executed_at

    return sorted(
        grouped.values(),
        key=lambda item: (-item.count, -item.last_used_at.timestamp(), item.query),
    )


@dataclass(slots=True)
class SearchAnalyticsAggregator:
    search_log_repository: SearchLogRepository

    def _entries(self, user_id: str, date_range: DateRange | None) -> list[SearchLogEntry]:
        if not user_id:
            raise ValidationError("user_id is required", details={"field": "user_id"})
        try:
            entries = self.search_log_repository.list_entries(user_id, date_range)
        except SearchError:
            raise
        except Exception as exc:
            raise StorageError(f"Search log lookup failed: {exc}") from exc
        return [entry for entry in entries if entry.user_id == user_id and entry.query.strip()]

    def popular_queries(self, user_id: str, limit: int = 10) -> list[PopularQuery]:
        resolved_limit = _validate_limit(limit, "limit")
        return rank_queries(self._entries(user_id, None))[:resolved_limit]

    def analytics(
        self,
        user_id: str,
        date_range: DateRange | None = None,
        *,
        interval: AnalyticsInterval = AnalyticsInterval.DAY,
        top_limit: int = 10,
    ) -> SearchAnalytics:
        """Return query volume per period, top queries and a usage summary.

        An empty log yields zeroed totals and empty series.
        """

        resolved_limit = _validate_limit(top_limit, "top_limit")
        entries = self._entries(user_id, date_range)

        volume: dict[date, int] = {}
        for entry in entries:
            bucket = period_start(entry.executed_at, interval)
            volume[bucket] = volume.get(bucket, 0) + 1

        ranked = rank_queries(entries)
        total = len(entries)
        unique = len(ranked)
        summary = SearchAnalyticsSummary(
            total_searches=total,
            unique_queries=unique,
            avg_executions_per_query=round(total / unique, 2) if unique else 0.0,
        )
        logger.info(
            "search_analytics_computed user_id=%s interval=%s total=%s unique=%s",
            user_id,
            interval.value,
            total,
            unique,
        )
        return SearchAnalytics(
            interval=interval,
            summary=summary,
            query_volume_over_time=[
                QueryVolumePoint(period=period, count=count) for period, count in sorted(volume.items())
            ],
            top_queries=ranked[:resolved_limit],
        )
