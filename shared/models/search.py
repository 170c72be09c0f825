"""Pydantic contracts for transaction search, saved queries and analytics."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shared.text_utils import normalize_text


class TransactionCategory(str, Enum):
    """Fixed set of expense categories."""

    FOOD = "food"
    TRANSPORT = "transport"
    ENTERTAINMENT = "entertainment"
    UTILITIES = "utilities"
    HEALTHCARE = "healthcare"
    SHOPPING = "shopping"
    OTHER = "other"


class TransactionDirection(str, Enum):
    """Direction selector derived from the amount sign."""

    ALL = "all"
    EXPENSE = "expense"
    INCOME = "income"


class SearchSort(str, Enum):
    RELEVANCE = "relevance"
    DATE = "date"
    AMOUNT = "amount"


class SuggestionMatch(str, Enum):
    """How a suggestion candidate matched the typed prefix, best first."""

    PREFIX = "prefix"
    SUBSTRING = "substring"
    FUZZY = "fuzzy"


class AnalyticsInterval(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


def normalize_tag(value: str) -> str:
    return normalize_text(value)


class Transaction(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    user_id: str
    description: str
    merchant: str | None = None
    amount: Decimal
    currency: str = Field(default="INR", min_length=3, max_length=3)
    category: TransactionCategory = TransactionCategory.OTHER
    tags: tuple[str, ...] = ()
    date: date
    created_at: datetime

    @property
    def direction(self) -> TransactionDirection:
        if self.amount < 0:
            return TransactionDirection.EXPENSE
        return TransactionDirection.INCOME


class DateRange(BaseModel):
    """Inclusive date bounds; either side may be open."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    start: date | None = None
    end: date | None = None

    @model_validator(mode="after")
    def check_order(self) -> "DateRange":
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError("start must be before or equal to end")
        return self

    def contains(self, value: date) -> bool:
        if self.start is not None and value < self.start:
            return False
        if self.end is not None and value > self.end:
            return False
        return True


class AmountRange(BaseModel):
    """Inclusive bounds on the absolute transaction amount."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    min: Decimal | None = Field(default=None, ge=0)
    max: Decimal | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_order(self) -> "AmountRange":
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("min must be lower than or equal to max")
        return self

    def contains(self, value: Decimal) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


class FilterSpec(BaseModel):
    """Canonical filter; every present dimension must hold (AND)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    date_range: DateRange | None = None
    amount_range: AmountRange | None = None
    categories: tuple[TransactionCategory, ...] = ()
    tags: tuple[str, ...] = ()
    direction: TransactionDirection = TransactionDirection.ALL

    @field_validator("categories")
    @classmethod
    def sort_categories(cls, value: tuple[TransactionCategory, ...]) -> tuple[TransactionCategory, ...]:
        return tuple(sorted(set(value), key=lambda category: category.value))

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(sorted({normalize_tag(tag) for tag in value if normalize_tag(tag)}))

    @property
    def is_empty(self) -> bool:
        return (
            self.date_range is None
            and self.amount_range is None
            and not self.categories
            and not self.tags
            and self.direction == TransactionDirection.ALL
        )

    def matches(self, transaction: Transaction) -> bool:
        if self.date_range is not None and not self.date_range.contains(transaction.date):
            return False
        if self.amount_range is not None and not self.amount_range.contains(abs(transaction.amount)):
            return False
        if self.categories and transaction.category not in self.categories:
            return False
        if self.tags:
            transaction_tags = {normalize_tag(tag) for tag in transaction.tags}
            if transaction_tags.isdisjoint(self.tags):
                return False
        if self.direction != TransactionDirection.ALL and transaction.direction != self.direction:
            return False
        return True


class SearchRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    query: str = Field(default="", max_length=200)
    filters: FilterSpec = Field(default_factory=FilterSpec)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    sort: SearchSort = SearchSort.RELEVANCE

    @field_validator("query", mode="before")
    @classmethod
    def strip_query(cls, value: object) -> object:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        return value

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class SearchHit(BaseModel):
    model_config = ConfigDict(extra="forbid")

    transaction: Transaction
    score: float


class SearchResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    items: list[SearchHit]
    total: int
    page: int
    limit: int
    pages: int
    max_score: float
    duration_ms: float
    query: str
    filters: FilterSpec


class SavedQuery(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    user_id: str
    name: str = Field(min_length=1, max_length=100)
    query: str = Field(default="", max_length=200)
    filters: FilterSpec = Field(default_factory=FilterSpec)
    created_at: datetime


class SuggestionCandidate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str
    weight: int
    match: SuggestionMatch
    category: TransactionCategory | None = None


class SearchLogEntry(BaseModel):
    """One executed search, as recorded for analytics."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    user_id: str
    query: str
    filters: FilterSpec = Field(default_factory=FilterSpec)
    result_count: int = Field(default=0, ge=0)
    executed_at: datetime

    @field_validator("executed_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class PopularQuery(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: str
    count: int
    last_used_at: datetime


class QueryVolumePoint(BaseModel):
    model_config = ConfigDict(extra="forbid")

    period: date
    count: int


class SearchAnalyticsSummary(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total_searches: int = 0
    unique_queries: int = 0
    avg_executions_per_query: float = 0.0


class SearchAnalytics(BaseModel):
    model_config = ConfigDict(extra="forbid")

    interval: AnalyticsInterval = AnalyticsInterval.DAY
    summary: SearchAnalyticsSummary = Field(default_factory=SearchAnalyticsSummary)
    query_volume_over_time: list[QueryVolumePoint] = Field(default_factory=list)
    top_queries: list[PopularQuery] = Field(default_factory=list)


class FilterOptions(BaseModel):
    """Values a filter form can offer for one user's corpus."""

    model_config = ConfigDict(extra="forbid")

    categories: list[TransactionCategory] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    first_date: date | None = None
    last_date: date | None = None
