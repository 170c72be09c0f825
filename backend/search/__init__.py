"""Search core: filter building, ranking, suggestions, saved queries, analytics."""

from .analytics import SearchAnalyticsAggregator
from .filter_builder import build_filter, build_search_request
from .query_executor import QueryExecutor
from .saved_queries import SavedQueryStore
from .suggestions import SuggestionEngine

__all__ = [
    "QueryExecutor",
    "SavedQueryStore",
    "SearchAnalyticsAggregator",
    "SuggestionEngine",
    "build_filter",
    "build_search_request",
]
