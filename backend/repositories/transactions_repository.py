"""Transactions corpus adapters.

Transactions are owned by the expense tracker and are read-only here. Adapters
return every row of a user that may satisfy a filter; callers re-check the
filter in process because not every dimension is pushed down to storage.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from threading import Lock
from typing import Protocol

from backend.db.supabase_client import DEFAULT_PAGE_SIZE, SupabaseClient, fetch_all_rows
from shared.errors import StorageError
from shared.models import FilterSpec, Transaction, TransactionCategory, TransactionDirection


_TRANSACTION_COLUMNS = "id,user_id,description,merchant,amount,currency,category,tags,date,created_at"


class TransactionsRepository(Protocol):
    def find_by_user(
        self,
        user_id: str,
        filters: FilterSpec,
        *,
        timeout: float | None = None,
    ) -> list[Transaction]:
        """Return the user's transactions that may match `filters`."""


class InMemoryTransactionsRepository:
    """In-memory corpus used by tests and local development."""

    def __init__(self, transactions: Iterable[Transaction] = ()) -> None:
        self._lock = Lock()
        self._transactions: list[Transaction] = list(transactions)

    def add(self, transaction: Transaction) -> None:
        with self._lock:
            self._transactions.append(transaction)

    def find_by_user(
        self,
        user_id: str,
        filters: FilterSpec,
        *,
        timeout: float | None = None,
    ) -> list[Transaction]:
        with self._lock:
            snapshot = list(self._transactions)
        return [
            transaction
            for transaction in snapshot
            if transaction.user_id == user_id and filters.matches(transaction)
        ]


def _parse_date(value: object, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise StorageError(f"Invalid value for '{field_name}': {value!r}") from exc


def _parse_datetime(value: object) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise StorageError(f"Invalid value for 'created_at': {value!r}") from exc
    else:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SupabaseTransactionsRepository:
    """Supabase repository reading `public.transactions`."""

    def __init__(
        self,
        client: SupabaseClient,
        *,
        table: str = "transactions",
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._client = client
        self._table = table
        self._page_size = page_size

    def _build_query(self, user_id: str, filters: FilterSpec) -> list[tuple[str, str | int]]:
        query: list[tuple[str, str | int]] = [("user_id", f"eq.{user_id}")]

        if filters.date_range is not None:
            if filters.date_range.start is not None:
                query.append(("date", f"gte.{filters.date_range.start.isoformat()}"))
            if filters.date_range.end is not None:
                query.append(("date", f"lte.{filters.date_range.end.isoformat()}"))

        if filters.categories:
            values = ",".join(category.value for category in filters.categories)
            query.append(("category", f"in.({values})"))

        if filters.direction == TransactionDirection.EXPENSE:
            query.append(("amount", "lt.0"))
        elif filters.direction == TransactionDirection.INCOME:
            query.append(("amount", "gte.0"))

        return query

    @staticmethod
    def _parse_row(row: dict[str, object]) -> Transaction:
        for required in ("id", "user_id", "amount", "date"):
            if row.get(required) in (None, ""):
                raise StorageError(f"Missing required field '{required}' in transactions row")

        try:
            amount = Decimal(str(row.get("amount")))
        except InvalidOperation as exc:
            raise StorageError(f"Invalid value for 'amount': {row.get('amount')!r}") from exc

        raw_category = str(row.get("category") or TransactionCategory.OTHER.value).lower()
        try:
            category = TransactionCategory(raw_category)
        except ValueError:
            category = TransactionCategory.OTHER

        raw_tags = row.get("tags") or []
        tags = tuple(str(tag) for tag in raw_tags) if isinstance(raw_tags, list) else ()

        merchant = row.get("merchant")
        return Transaction(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            description=str(row.get("description") or ""),
            merchant=str(merchant) if merchant else None,
            amount=amount,
            currency=str(row.get("currency") or "INR").upper(),
            category=category,
            tags=tags,
            date=_parse_date(row.get("date"), "date"),
            created_at=_parse_datetime(row.get("created_at")),
        )

    def find_by_user(
        self,
        user_id: str,
        filters: FilterSpec,
        *,
        timeout: float | None = None,
    ) -> list[Transaction]:
        query = [
            *self._build_query(user_id, filters),
            ("select", _TRANSACTION_COLUMNS),
            ("order", "date.desc,created_at.desc,id.desc"),
        ]
        rows = fetch_all_rows(
            self._client,
            table=self._table,
            query=query,
            page_size=self._page_size,
            timeout=timeout,
        )
        return [self._parse_row(row) for row in rows]
