"""Bearer token resolution against Supabase Auth.

Tokens are issued and validated by Supabase; this module only asks Supabase
which user a token belongs to.
"""

from __future__ import annotations

import json
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from shared import config


class UnauthorizedError(Exception):
    """Raised when a bearer token cannot be resolved to a user."""


_AUTH_TIMEOUT_SECONDS = 5.0


def get_user_id_from_bearer_token(token: str) -> str:
    """Return the Supabase auth user id owning `token`."""

    supabase_url = (config.supabase_url() or "").rstrip("/")
    anon_key = config.supabase_anon_key()
    if not supabase_url or not anon_key:
        raise UnauthorizedError("Supabase auth is not configured")

    request = Request(
        url=f"{supabase_url}/auth/v1/user",
        headers={
            "apikey": anon_key,
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        },
        method="GET",
    )

    try:
        with urlopen(request, timeout=_AUTH_TIMEOUT_SECONDS) as response:  # noqa: S310 - trusted Supabase URL from env
            payload = json.loads(response.read().decode("utf-8"))
    except (HTTPError, URLError, TimeoutError, json.JSONDecodeError) as exc:
        raise UnauthorizedError("Unauthorized") from exc

    user_id = payload.get("id") if isinstance(payload, dict) else None
    if not isinstance(user_id, str) or not user_id.strip():
        raise UnauthorizedError("Unauthorized")
    return user_id
