"""Pydantic models shared across backend and api layers."""

from .search import (
    AmountRange,
    AnalyticsInterval,
    DateRange,
    FilterOptions,
    FilterSpec,
    PopularQuery,
    QueryVolumePoint,
    SavedQuery,
    SearchAnalytics,
    SearchAnalyticsSummary,
    SearchHit,
    SearchLogEntry,
    SearchRequest,
    SearchResult,
    SearchSort,
    SuggestionCandidate,
    SuggestionMatch,
    Transaction,
    TransactionCategory,
    TransactionDirection,
)

__all__ = [
    "AmountRange",
    "AnalyticsInterval",
    "DateRange",
    "FilterOptions",
    "FilterSpec",
    "PopularQuery",
    "QueryVolumePoint",
    "SavedQuery",
    "SearchAnalytics",
    "SearchAnalyticsSummary",
    "SearchHit",
    "SearchLogEntry",
    "SearchRequest",
    "SearchResult",
    "SearchSort",
    "SuggestionCandidate",
    "SuggestionMatch",
    "Transaction",
    "TransactionCategory",
    "TransactionDirection",
]
