"""Normalize raw, untrusted filter parameters into a canonical FilterSpec.

Several spellings of every dimension are accepted so that payloads from the
web client (`startDate`, `minAmount`), saved queries (`date_range`) and the
canonical dump of a FilterSpec all build the same value. Unknown keys are
ignored. Any malformed value rejects the whole filter.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from pydantic import ValidationError as PydanticValidationError

from shared import config
from shared.errors import ValidationError
from shared.models import (
    AmountRange,
    DateRange,
    FilterSpec,
    SearchRequest,
    SearchSort,
    TransactionCategory,
    TransactionDirection,
)
from shared.models.search import normalize_tag


_DATE_RANGE_KEYS = ("date_range", "dateRange")
_START_KEYS = ("start_date", "startDate")
_END_KEYS = ("end_date", "endDate")
_AMOUNT_RANGE_KEYS = ("amount_range", "amountRange")
_MIN_KEYS = ("min_amount", "minAmount")
_MAX_KEYS = ("max_amount", "maxAmount")
_DIRECTION_KEYS = ("direction", "type")

_DIRECTION_ALIASES = {
    "all": TransactionDirection.ALL,
    "expense": TransactionDirection.EXPENSE,
    "expenses": TransactionDirection.EXPENSE,
    "debit": TransactionDirection.EXPENSE,
    "income": TransactionDirection.INCOME,
    "credit": TransactionDirection.INCOME,
}

MAX_QUERY_LENGTH = 200


def _first_present(raw: Mapping[str, object], keys: tuple[str, ...]) -> object:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def _parse_date(value: object, field_name: str) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"Invalid {field_name}: expected an ISO date", details={"field": field_name})

    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError as exc:
        raise ValidationError(
            f"Invalid {field_name}: '{value}' is not a valid calendar date",
            details={"field": field_name},
        ) from exc


def _parse_amount(value: object, field_name: str) -> Decimal | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise ValidationError(f"Invalid {field_name}: expected a number", details={"field": field_name})
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"Invalid {field_name}: must be finite", details={"field": field_name})
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValidationError(
            f"Invalid {field_name}: '{value}' is not a number",
            details={"field": field_name},
        ) from exc
    if not amount.is_finite():
        raise ValidationError(f"Invalid {field_name}: must be finite", details={"field": field_name})
    if amount < 0:
        raise ValidationError(f"Invalid {field_name}: must be zero or positive", details={"field": field_name})
    return amount


def _as_list(value: object, field_name: str) -> list[object]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    raise ValidationError(f"Invalid {field_name}: expected a string or a list", details={"field": field_name})


def _build_date_range(raw: Mapping[str, object]) -> DateRange | None:
    nested = _first_present(raw, _DATE_RANGE_KEYS)
    if nested is not None and not isinstance(nested, Mapping):
        raise ValidationError("Invalid date_range: expected an object", details={"field": "date_range"})

    start_value = _first_present(raw, _START_KEYS)
    end_value = _first_present(raw, _END_KEYS)
    if isinstance(nested, Mapping):
        if start_value is None:
            start_value = nested.get("start")
        if end_value is None:
            end_value = nested.get("end")

    start = _parse_date(start_value, "start_date")
    end = _parse_date(end_value, "end_date")
    if start is None and end is None:
        return None
    if start is not None and end is not None and start > end:
        raise ValidationError(
            "start_date must be before or equal to end_date",
            details={"field": "date_range"},
        )
    return DateRange(start=start, end=end)


def _build_amount_range(raw: Mapping[str, object]) -> AmountRange | None:
    nested = _first_present(raw, _AMOUNT_RANGE_KEYS)
    if nested is not None and not isinstance(nested, Mapping):
        raise ValidationError("Invalid amount_range: expected an object", details={"field": "amount_range"})

    min_value = _first_present(raw, _MIN_KEYS)
    max_value = _first_present(raw, _MAX_KEYS)
    if isinstance(nested, Mapping):
        if min_value is None:
            min_value = nested.get("min")
        if max_value is None:
            max_value = nested.get("max")

    minimum = _parse_amount(min_value, "min_amount")
    maximum = _parse_amount(max_value, "max_amount")
    if minimum is None and maximum is None:
        return None
    if minimum is not None and maximum is not None and minimum > maximum:
        raise ValidationError(
            "min_amount must be lower than or equal to max_amount",
            details={"field": "amount_range"},
        )
    return AmountRange(min=minimum, max=maximum)


def _build_categories(raw: Mapping[str, object]) -> tuple[TransactionCategory, ...]:
    categories: set[TransactionCategory] = set()
    for value in _as_list(raw.get("categories"), "categories"):
        if isinstance(value, TransactionCategory):
            categories.add(value)
            continue
        if not isinstance(value, str):
            raise ValidationError("Invalid categories: expected strings", details={"field": "categories"})
        try:
            categories.add(TransactionCategory(value.strip().lower()))
        except ValueError as exc:
            allowed = ", ".join(category.value for category in TransactionCategory)
            raise ValidationError(
                f"Unknown category '{value}'. Expected one of: {allowed}",
                details={"field": "categories", "value": value},
            ) from exc
    return tuple(categories)


def _build_tags(raw: Mapping[str, object], max_tags: int) -> tuple[str, ...]:
    # The cap applies to the supplied items, duplicates included.
    values = _as_list(raw.get("tags"), "tags")
    if len(values) > max_tags:
        raise ValidationError(
            f"Too many tags: {len(values)} supplied, at most {max_tags} allowed",
            details={"field": "tags", "max": max_tags},
        )
    tags: set[str] = set()
    for value in values:
        if not isinstance(value, str):
            raise ValidationError("Invalid tags: expected strings", details={"field": "tags"})
        normalized = normalize_tag(value)
        if normalized:
            tags.add(normalized)
    return tuple(tags)


def _build_direction(raw: Mapping[str, object]) -> TransactionDirection:
    value = _first_present(raw, _DIRECTION_KEYS)
    if value is None:
        return TransactionDirection.ALL
    if isinstance(value, TransactionDirection):
        return value
    if not isinstance(value, str) or value.strip().lower() not in _DIRECTION_ALIASES:
        raise ValidationError(
            f"Invalid direction '{value}'. Expected one of: all, expense, income",
            details={"field": "direction"},
        )
    return _DIRECTION_ALIASES[value.strip().lower()]


def build_filter(
    raw: Mapping[str, object] | FilterSpec | None,
    *,
    max_tags: int | None = None,
) -> FilterSpec:
    """Return the canonical FilterSpec for raw filter parameters.

    Raises ValidationError when any dimension is malformed; nothing is
    partially applied.
    """

    if raw is None:
        return FilterSpec()
    if isinstance(raw, FilterSpec):
        raw = raw.model_dump(mode="json")
    if not isinstance(raw, Mapping):
        raise ValidationError("Invalid filters: expected an object", details={"field": "filters"})

    limit = max_tags if max_tags is not None else config.search_max_tags()
    return FilterSpec(
        date_range=_build_date_range(raw),
        amount_range=_build_amount_range(raw),
        categories=_build_categories(raw),
        tags=_build_tags(raw, limit),
        direction=_build_direction(raw),
    )


def _parse_int(value: object, field_name: str, default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field_name}: expected an integer", details={"field": field_name})
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"Invalid {field_name}: expected an integer", details={"field": field_name})


def build_search_request(
    raw: Mapping[str, object] | None,
    *,
    max_tags: int | None = None,
) -> SearchRequest:
    """Validate a raw search payload (`query`, `filters`, `page`, `limit`, `sort`)."""

    raw = raw or {}
    if not isinstance(raw, Mapping):
        raise ValidationError("Invalid search request: expected an object")

    query = raw.get("query")
    if query is not None and not isinstance(query, str):
        raise ValidationError("Invalid query: expected a string", details={"field": "query"})
    query = (query or "").strip()
    if len(query) > MAX_QUERY_LENGTH:
        raise ValidationError(
            f"Query is too long: at most {MAX_QUERY_LENGTH} characters",
            details={"field": "query"},
        )

    filters = build_filter(raw.get("filters"), max_tags=max_tags)  # type: ignore[arg-type]
    page = _parse_int(raw.get("page"), "page", 1)
    limit = _parse_int(raw.get("limit"), "limit", 20)

    sort_value = raw.get("sort") or raw.get("sortBy") or SearchSort.RELEVANCE.value
    try:
        sort = SearchSort(str(sort_value).strip().lower())
    except ValueError as exc:
        raise ValidationError(
            f"Invalid sort '{sort_value}'. Expected one of: relevance, date, amount",
            details={"field": "sort"},
        ) from exc

    try:
        return SearchRequest(query=query, filters=filters, page=page, limit=limit, sort=sort)
    except PydanticValidationError as exc:
        first_error = exc.errors()[0]
        field_name = ".".join(str(part) for part in first_error.get("loc", ()))
        raise ValidationError(
            f"Invalid {field_name}: {first_error.get('msg')}",
            details={"field": field_name},
        ) from exc
