"""Composition root for backend services."""

from __future__ import annotations

import logging

from backend.db.supabase_client import SupabaseClient, SupabaseSettings
from backend.repositories.saved_queries_repository import (
    InMemorySavedQueriesRepository,
    SavedQueriesRepository,
    SupabaseSavedQueriesRepository,
)
from backend.repositories.search_log_repository import (
    InMemorySearchLogRepository,
    SearchLogRepository,
    SupabaseSearchLogRepository,
)
from backend.repositories.transactions_repository import (
    InMemoryTransactionsRepository,
    SupabaseTransactionsRepository,
    TransactionsRepository,
)
from backend.search.analytics import SearchAnalyticsAggregator
from backend.search.query_executor import QueryExecutor
from backend.search.saved_queries import SavedQueryStore
from backend.search.suggestions import SuggestionEngine
from backend.services.search_service import SearchService
from shared import config


logger = logging.getLogger(__name__)


def build_search_service_from_repositories(
    *,
    transactions_repository: TransactionsRepository,
    saved_queries_repository: SavedQueriesRepository,
    search_log_repository: SearchLogRepository,
) -> SearchService:
    """Wire search components over the given repositories."""

    return SearchService(
        transactions_repository=transactions_repository,
        search_log_repository=search_log_repository,
        query_executor=QueryExecutor(transactions_repository=transactions_repository),
        suggestion_engine=SuggestionEngine(transactions_repository=transactions_repository),
        saved_query_store=SavedQueryStore(repository=saved_queries_repository),
        analytics_aggregator=SearchAnalyticsAggregator(search_log_repository=search_log_repository),
    )


def build_search_service() -> SearchService:
    """Build the search service with Supabase adapters when configured.

    Without Supabase credentials the service runs over in-memory repositories,
    which is what local development and tests use.
    """

    supabase_url = config.supabase_url()
    supabase_key = config.supabase_service_role_key()
    if supabase_url and supabase_key:
        supabase_client = SupabaseClient(
            settings=SupabaseSettings(
                url=supabase_url,
                service_role_key=supabase_key,
                anon_key=config.supabase_anon_key(),
            )
        )
        logger.info("search_service_backend=supabase")
        return build_search_service_from_repositories(
            transactions_repository=SupabaseTransactionsRepository(client=supabase_client),
            saved_queries_repository=SupabaseSavedQueriesRepository(client=supabase_client),
            search_log_repository=SupabaseSearchLogRepository(client=supabase_client),
        )

    logger.info("search_service_backend=in_memory")
    return build_search_service_from_repositories(
        transactions_repository=InMemoryTransactionsRepository(),
        saved_queries_repository=InMemorySavedQueriesRepository(),
        search_log_repository=InMemorySearchLogRepository(),
    )
