"""Ranked, paginated free-text search over one user's transactions."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from datetime import date
from typing import Callable

from backend.repositories.transactions_repository import TransactionsRepository
from backend.search.deadline import Deadline
from shared.errors import SearchError, StorageError, ValidationError
from shared.models import SearchHit, SearchRequest, SearchResult, SearchSort, Transaction
from shared.text_utils import normalize_text, tokenize, words


logger = logging.getLogger(__name__)


PREFIX_MATCH_WEIGHT = 3.0
SUBSTRING_MATCH_WEIGHT = 1.0
# Kept below the smallest token weight difference so recency only orders
# transactions whose token matches are equivalent.
RECENCY_MAX_BONUS = 0.5
RECENCY_DECAY_DAYS = 30.0

_DEADLINE_CHECK_EVERY = 256


def score_transaction(transaction: Transaction, tokens: list[str], *, today: date) -> float:
    """Return the relevance of a transaction for query tokens, 0.0 when nothing matches."""

    description_words = words(transaction.description)
    merchant_words = words(transaction.merchant)
    searchable_words = description_words + merchant_words
    haystack = f"{normalize_text(transaction.description)} {normalize_text(transaction.merchant)}"

    token_score = 0.0
    for token in tokens:
        if any(word.startswith(token) for word in searchable_words):
            token_score += PREFIX_MATCH_WEIGHT
        elif token in haystack:
            token_score += SUBSTRING_MATCH_WEIGHT

    if token_score == 0:
        return 0.0

    age_days = max((today - transaction.date).days, 0)
    recency = RECENCY_MAX_BONUS * RECENCY_DECAY_DAYS / (RECENCY_DECAY_DAYS + age_days)
    return round(token_score + recency, 6)


def _recency_key(transaction: Transaction) -> tuple[int, float]:
    return (-transaction.date.toordinal(), -transaction.created_at.timestamp())


def _sort_key(sort: SearchSort) -> Callable[[SearchHit], tuple]:
    if sort == SearchSort.DATE:
        return lambda hit: (*_recency_key(hit.transaction), hit.transaction.id)
    if sort == SearchSort.AMOUNT:
        return lambda hit: (-abs(hit.transaction.amount), *_recency_key(hit.transaction), hit.transaction.id)
    return lambda hit: (-hit.score, *_recency_key(hit.transaction), hit.transaction.id)


@dataclass(slots=True)
class QueryExecutor:
    transactions_repository: TransactionsRepository
    today: Callable[[], date] = date.today
    clock: Callable[[], float] = time.monotonic

    def execute(
        self,
        user_id: str,
        request: SearchRequest,
        *,
        timeout: float | None = None,
    ) -> SearchResult:
        """Run a search scoped to `user_id`.

        Every returned transaction belongs to `user_id` and satisfies every
        dimension of `request.filters`. The ordering is total, so walking the
        pages of a fixed corpus yields each match exactly once.
        """

        started = time.perf_counter()
        if not user_id:
            raise ValidationError("user_id is required", details={"field": "user_id"})

        deadline = Deadline.after(timeout, clock=self.clock)
        tokens = tokenize(request.query)

        # Only the empty query matches everything; punctuation alone matches nothing.
        if request.query and not tokens:
            candidates: list[Transaction] = []
        else:
            try:
                candidates = self.transactions_repository.find_by_user(
                    user_id,
                    request.filters,
                    timeout=deadline.remaining("search"),
                )
            except SearchError:
                raise
            except Exception as exc:
                raise StorageError(f"Transaction lookup failed: {exc}") from exc

        today = self.today()
        hits: list[SearchHit] = []
        for index, transaction in enumerate(candidates):
            if index % _DEADLINE_CHECK_EVERY == 0:
                deadline.check("search")
            if transaction.user_id != user_id or not request.filters.matches(transaction):
                continue
            if tokens:
                score = score_transaction(transaction, tokens, today=today)
                if score <= 0:
                    continue
            else:
                score = 0.0
            hits.append(SearchHit(transaction=transaction, score=score))
        deadline.check("search")

        hits.sort(key=_sort_key(request.sort))
        total = len(hits)
        page_items = hits[request.skip : request.skip + request.limit]
        max_score = max((hit.score for hit in hits), default=0.0)
        duration_ms = (time.perf_counter() - started) * 1000

        logger.info(
            "search_executed user_id=%s tokens=%s total=%s page=%s duration_ms=%.2f",
            user_id,
            len(tokens),
            total,
            request.page,
            duration_ms,
        )
        return SearchResult(
            items=page_items,
            total=total,
            page=request.page,
            limit=request.limit,
            pages=math.ceil(total / request.limit) if total else 0,
            max_score=max_score,
            duration_ms=duration_ms,
            query=request.query,
            filters=request.filters,
        )
