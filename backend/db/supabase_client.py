"""Minimal Supabase PostgREST client used by backend repositories only."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from shared.errors import ConflictError, SearchTimeoutError, StorageError


Query = dict[str, str | int] | list[tuple[str, str | int]]


@dataclass(slots=True)
class SupabaseSettings:
    url: str
    service_role_key: str
    anon_key: str | None = None


class SupabaseClient:
    def __init__(self, settings: SupabaseSettings) -> None:
        self.settings = settings

    def healthcheck(self) -> bool:
        return bool(self.settings.url and self.settings.service_role_key)

    def _request(
        self,
        *,
        method: str,
        table: str,
        query: Query,
        prefer: str,
        body: object | None = None,
        timeout: float | None = None,
    ) -> tuple[Any, Any]:
        encoded_query = urlencode(query, doseq=True)
        api_key = self.settings.service_role_key
        if not api_key:
            raise StorageError("Missing Supabase API key")
        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
            "Prefer": prefer,
        }
        payload = None
        if body is not None:
            payload = json.dumps(body, default=str).encode("utf-8")
            headers["Content-Type"] = "application/json"
        url = f"{self.settings.url.rstrip('/')}/rest/v1/{table}"
        if encoded_query:
            url = f"{url}?{encoded_query}"
        request = Request(url=url, data=payload, headers=headers, method=method)

        kwargs: dict[str, float] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            with urlopen(request, **kwargs) as response:  # noqa: S310 - URL comes from trusted env config
                raw_body = response.read().decode("utf-8")
                rows = json.loads(raw_body) if raw_body else []
                return rows, response.headers
        except HTTPError as exc:
            error_body = exc.read().decode("utf-8", errors="replace")[:500]
            if exc.code == 409:
                raise ConflictError(f"Supabase conflict on {table}: {error_body}") from exc
            raise StorageError(
                f"Supabase request failed with status {exc.code}: {error_body}",
                details={"status": exc.code, "table": table},
            ) from exc
        except URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                raise SearchTimeoutError(f"Supabase request to {table} timed out") from exc
            raise StorageError(f"Supabase unreachable: {exc.reason}", details={"table": table}) from exc
        except TimeoutError as exc:
            raise SearchTimeoutError(f"Supabase request to {table} timed out") from exc
        except json.JSONDecodeError as exc:
            raise StorageError(f"Supabase returned invalid JSON for {table}") from exc

    def get_rows(
        self,
        *,
        table: str,
        query: Query,
        with_count: bool,
        timeout: float | None = None,
    ) -> tuple[list[dict[str, Any]], int | None]:
        """Fetch rows from PostgREST and optionally parse exact row count."""

        rows, headers = self._request(
            method="GET",
            table=table,
            query=query,
            prefer="count=exact" if with_count else "return=representation",
            timeout=timeout,
        )
        total: int | None = None
        if with_count:
            content_range = headers.get("content-range") if headers is not None else None
            if content_range and "/" in content_range:
                _, total_str = content_range.split("/", maxsplit=1)
                if total_str.isdigit():
                    total = int(total_str)
        return rows, total

    def post_rows(
        self,
        *,
        table: str,
        payload: dict[str, object] | list[dict[str, object]],
        query: Query | None = None,
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        """Insert rows and return their stored representation."""

        rows, _ = self._request(
            method="POST",
            table=table,
            query=query or {},
            prefer="return=representation",
            body=payload,
            timeout=timeout,
        )
        return rows

    def delete_rows(
        self,
        *,
        table: str,
        query: Query,
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        """Delete rows matching the query and return the deleted representation."""

        rows, _ = self._request(
            method="DELETE",
            table=table,
            query=query,
            prefer="return=representation",
            timeout=timeout,
        )
        return rows


DEFAULT_PAGE_SIZE = 1000


def fetch_all_rows(
    client: SupabaseClient,
    *,
    table: str,
    query: list[tuple[str, str | int]],
    page_size: int = DEFAULT_PAGE_SIZE,
    timeout: float | None = None,
) -> list[dict[str, Any]]:
    """Read every row matching `query`, one limit/offset page at a time.

    PostgREST caps unpaged responses at its max-rows setting, so a single GET
    can silently truncate a large result. `query` must carry a total order.
    """

    rows: list[dict[str, Any]] = []
    offset = 0
    while True:
        page, _ = client.get_rows(
            table=table,
            query=[*query, ("limit", page_size), ("offset", offset)],
            with_count=False,
            timeout=timeout,
        )
        rows.extend(page)
        if len(page) < page_size:
            return rows
        offset += page_size
