"""Tests for search log aggregations."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from backend.repositories.search_log_repository import InMemorySearchLogRepository
from backend.search.analytics import SearchAnalyticsAggregator, period_start
from shared.errors import StorageError, ValidationError
from shared.models import AnalyticsInterval, DateRange, SearchLogEntry
from tests.fakes import USER_A, USER_B


def _entry(index: int, query: str, executed_at: datetime, *, user_id: str = USER_A) -> SearchLogEntry:
    return SearchLogEntry(
        id=f"log-{index}",
        user_id=user_id,
        query=query,
        result_count=1,
        executed_at=executed_at,
    )


def _at(year: int, month: int, day: int, hour: int = 9) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def _aggregator(entries: list[SearchLogEntry]) -> SearchAnalyticsAggregator:
    repository = InMemorySearchLogRepository()
    for entry in entries:
        repository.record(entry)
    return SearchAnalyticsAggregator(search_log_repository=repository)


def test_empty_log_yields_zeroed_analytics() -> None:
    analytics = _aggregator([]).analytics(USER_A)

    assert analytics.summary.total_searches == 0
    assert analytics.summary.unique_queries == 0
    assert analytics.summary.avg_executions_per_query == 0.0
    assert analytics.query_volume_over_time == []
    assert analytics.top_queries == []


def test_popular_queries_break_count_ties_by_recency() -> None:
    aggregator = _aggregator(
        [
            _entry(1, "coffee", _at(2024, 1, 1)),
            _entry(2, "coffee", _at(2024, 1, 2)),
            _entry(3, "rent", _at(2024, 1, 3)),
            _entry(4, "rent", _at(2024, 1, 4)),
            _entry(5, "tea", _at(2024, 1, 5)),
            _entry(6, "coffee", _at(2024, 1, 6), user_id=USER_B),
        ]
    )

    popular = aggregator.popular_queries(USER_A)

    assert [(item.query, item.count) for item in popular] == [("rent", 2), ("coffee", 2), ("tea", 1)]
    assert popular[0].last_used_at == _at(2024, 1, 4)
    assert [item.query for item in aggregator.popular_queries(USER_A, limit=1)] == ["rent"]


def test_summary_and_daily_volume() -> None:
    analytics = _aggregator(
        [
            _entry(1, "coffee", _at(2024, 1, 1, 8)),
            _entry(2, "coffee", _at(2024, 1, 1, 18)),
            _entry(3, "rent", _at(2024, 1, 3)),
            _entry(4, "   ", _at(2024, 1, 3)),
        ]
    ).analytics(USER_A)

    assert analytics.summary.total_searches == 3
    assert analytics.summary.unique_queries == 2
    assert analytics.summary.avg_executions_per_query == 1.5
    assert [(point.period, point.count) for point in analytics.query_volume_over_time] == [
        (date(2024, 1, 1), 2),
        (date(2024, 1, 3), 1),
    ]
    assert [item.query for item in analytics.top_queries] == ["coffee", "rent"]


def test_weekly_and_monthly_buckets() -> None:
    entries = [
        _entry(1, "coffee", _at(2024, 1, 1)),
        _entry(2, "coffee", _at(2024, 1, 7)),
        _entry(3, "coffee", _at(2024, 1, 8)),
        _entry(4, "coffee", _at(2024, 2, 3)),
    ]
    aggregator = _aggregator(entries)

    weekly = aggregator.analytics(USER_A, interval=AnalyticsInterval.WEEK)
    monthly = aggregator.analytics(USER_A, interval=AnalyticsInterval.MONTH)

    assert [(point.period, point.count) for point in weekly.query_volume_over_time] == [
        (date(2024, 1, 1), 2),
        (date(2024, 1, 8), 1),
        (date(2024, 1, 29), 1),
    ]
    assert [(point.period, point.count) for point in monthly.query_volume_over_time] == [
        (date(2024, 1, 1), 3),
        (date(2024, 2, 1), 1),
    ]


def test_period_start_for_each_interval() -> None:
    moment = _at(2024, 3, 14)

    assert period_start(moment, AnalyticsInterval.DAY) == date(2024, 3, 14)
    assert period_start(moment, AnalyticsInterval.WEEK) == date(2024, 3, 11)
    assert period_start(moment, AnalyticsInterval.MONTH) == date(2024, 3, 1)


def test_date_range_limits_analytics() -> None:
    aggregator = _aggregator(
        [
            _entry(1, "coffee", _at(2024, 1, 1)),
            _entry(2, "rent", _at(2024, 1, 15)),
            _entry(3, "tea", _at(2024, 2, 1)),
        ]
    )

    analytics = aggregator.analytics(USER_A, DateRange(start=date(2024, 1, 10), end=date(2024, 1, 31)))

    assert analytics.summary.total_searches == 1
    assert [item.query for item in analytics.top_queries] == ["rent"]


@pytest.mark.parametrize("limit", [0, 51, True])
def test_invalid_limits_are_rejected(limit: int) -> None:
    aggregator = _aggregator([])

    with pytest.raises(ValidationError):
        aggregator.popular_queries(USER_A, limit)
    with pytest.raises(ValidationError):
        aggregator.analytics(USER_A, top_limit=limit)


def test_log_failure_is_a_storage_error() -> None:
    class _BrokenLog:
        def record(self, entry):
            return None

        def list_entries(self, user_id, date_range=None):
            raise ConnectionError("log unavailable")

    aggregator = SearchAnalyticsAggregator(search_log_repository=_BrokenLog())

    with pytest.raises(StorageError, match="log unavailable"):
        aggregator.popular_queries(USER_A)


def test_naive_timestamps_are_read_as_utc() -> None:
    aggregator = _aggregator(
        [
            _entry(1, "coffee", datetime(2024, 1, 1, 9)),
            _entry(2, "coffee", datetime(2024, 1, 2, 9, tzinfo=timezone.utc)),
        ]
    )

    popular = aggregator.popular_queries(USER_A)

    assert [(item.query, item.count) for item in popular] == [("coffee", 2)]
    assert popular[0].last_used_at == _at(2024, 1, 2)
    assert _entry(3, "coffee", datetime(2024, 1, 1, 9)).executed_at == _at(2024, 1, 1)
