"""Completion candidates drawn from a user's own descriptions and merchants."""

from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from difflib import SequenceMatcher
from typing import Callable

from backend.repositories.transactions_repository import TransactionsRepository
from backend.search.deadline import Deadline
from shared import config
from shared.errors import SearchError, StorageError, ValidationError
from shared.models import FilterSpec, SuggestionCandidate, SuggestionMatch, TransactionCategory
from shared.text_utils import normalize_text


logger = logging.getLogger(__name__)


MAX_PREFIX_LENGTH = 100
MAX_SUGGESTIONS = 100
FUZZY_MIN_RATIO = 0.8
FUZZY_MIN_PREFIX_LENGTH = 3

_MATCH_RANK = {
    SuggestionMatch.PREFIX: 0,
    SuggestionMatch.SUBSTRING: 1,
    SuggestionMatch.FUZZY: 2,
}
_DEADLINE_CHECK_EVERY = 256


@dataclass(slots=True)
class _CandidateStats:
    text: str
    count: int = 0
    last_seen: date = date.min
    categories: Counter = field(default_factory=Counter)


def classify_candidate(candidate: str, needle: str) -> SuggestionMatch | None:
    """Return how a normalized candidate matches a normalized prefix."""

    if candidate.startswith(needle):
        return SuggestionMatch.PREFIX
    if needle in candidate:
        return SuggestionMatch.SUBSTRING
    if len(needle) < FUZZY_MIN_PREFIX_LENGTH:
        return None
    for word in candidate.split():
        for size in (len(needle), len(needle) + 1):
            if SequenceMatcher(None, needle, word[:size]).ratio() >= FUZZY_MIN_RATIO:
                return SuggestionMatch.FUZZY
    return None


@dataclass(slots=True)
class SuggestionEngine:
    transactions_repository: TransactionsRepository
    min_length: int | None = None
    default_limit: int | None = None
    clock: Callable[[], float] = time.monotonic

    def _validate(self, prefix: object, limit: int | None) -> tuple[str, int]:
        if not isinstance(prefix, str):
            raise ValidationError("Prefix must be a string", details={"field": "q"})
        text = prefix.strip()
        min_length = self.min_length or config.search_suggestion_min_length()
        if len(text) < min_length:
            raise ValidationError(
                f"Prefix must be at least {min_length} characters",
                details={"field": "q", "min": min_length},
            )
        if len(text) > MAX_PREFIX_LENGTH:
            raise ValidationError(
                f"Prefix must be at most {MAX_PREFIX_LENGTH} characters",
                details={"field": "q", "max": MAX_PREFIX_LENGTH},
            )

        resolved_limit = limit if limit is not None else (self.default_limit or config.search_suggestions_limit())
        if isinstance(resolved_limit, bool) or not 1 <= resolved_limit <= MAX_SUGGESTIONS:
            raise ValidationError(
                f"limit must be between 1 and {MAX_SUGGESTIONS}",
                details={"field": "limit"},
            )
        return text, resolved_limit

    def suggest(
        self,
        user_id: str,
        prefix: str,
        *,
        limit: int | None = None,
        timeout: float | None = None,
    ) -> list[SuggestionCandidate]:
        """Return ranked completions for `prefix`; prefix matches rank first."""

        text, resolved_limit = self._validate(prefix, limit)
        if not user_id:
            raise ValidationError("user_id is required", details={"field": "user_id"})
        needle = normalize_text(text)

        deadline = Deadline.after(timeout, clock=self.clock)
        try:
            transactions = self.transactions_repository.find_by_user(
                user_id,
                FilterSpec(),
                timeout=deadline.remaining("suggest"),
            )
        except SearchError:
            raise
        except Exception as exc:
            raise StorageError(f"Transaction lookup failed: {exc}") from exc

        stats_by_key: dict[str, _CandidateStats] = {}
        for index, transaction in enumerate(transactions):
            if index % _DEADLINE_CHECK_EVERY == 0:
                deadline.check("suggest")
            if transaction.user_id != user_id:
                continue
            seen_keys: set[str] = set()
            for source in (transaction.description, transaction.merchant):
                key = normalize_text(source)
                if not key or key in seen_keys:
                    continue
                seen_keys.add(key)
                stats = stats_by_key.setdefault(key, _CandidateStats(text=" ".join((source or "").split())))
                stats.count += 1
                stats.last_seen = max(stats.last_seen, transaction.date)
                stats.categories[transaction.category] += 1

        ranked: list[tuple[tuple, SuggestionCandidate]] = []
        for key, stats in stats_by_key.items():
            match = classify_candidate(key, needle)
            if match is None:
                continue
            category: TransactionCategory | None = None
            if stats.categories:
                category = stats.categories.most_common(1)[0][0]
            candidate = SuggestionCandidate(
                text=stats.text,
                weight=stats.count,
                match=match,
                category=category,
            )
            sort_key = (_MATCH_RANK[match], -stats.count, -stats.last_seen.toordinal(), key)
            ranked.append((sort_key, candidate))
        deadline.check("suggest")

        ranked.sort(key=lambda item: item[0])
        suggestions = [candidate for _, candidate in ranked[:resolved_limit]]
        logger.info(
            "suggestions_computed user_id=%s prefix_length=%s candidates=%s returned=%s",
            user_id,
            len(text),
            len(ranked),
            len(suggestions),
        )
        return suggestions
