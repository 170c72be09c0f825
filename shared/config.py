"""Configuration helpers for environment variables."""

from __future__ import annotations

import os
import logging

from dotenv import load_dotenv


logger = logging.getLogger(__name__)


_TRUE_VALUES = {"1", "true", "yes"}
_FALSE_VALUES = {"0", "false", "no"}


def _should_load_dotenv() -> bool:
    """Return whether local dotenv loading should run."""
    app_env = os.getenv("APP_ENV", "dev").strip().lower()
    return app_env in {"dev", "local"}


if _should_load_dotenv():
    load_dotenv()


def get_env(name: str, default: str | None = None) -> str | None:
    """Return a raw environment value or default."""
    return os.getenv(name, default)


def _get_int(name: str, default: int, *, minimum: int = 1) -> int:
    raw_value = (get_env(name, "") or "").strip()
    if not raw_value:
        return default
    try:
        value = int(raw_value)
    except ValueError:
        logger.warning("config_invalid_int name=%s value=%s default=%s", name, raw_value, default)
        return default
    if value < minimum:
        logger.warning("config_int_below_minimum name=%s value=%s default=%s", name, value, default)
        return default
    return value


def _get_float(name: str, default: float) -> float:
    raw_value = (get_env(name, "") or "").strip()
    if not raw_value:
        return default
    try:
        value = float(raw_value)
    except ValueError:
        logger.warning("config_invalid_float name=%s value=%s default=%s", name, raw_value, default)
        return default
    if value <= 0:
        logger.warning("config_float_not_positive name=%s value=%s default=%s", name, value, default)
        return default
    return value


def app_env() -> str:
    """Return the current application environment."""
    return (get_env("APP_ENV", "dev") or "dev").strip() or "dev"


def cors_allow_origins() -> list[str]:
    """Return CORS allowed origins from env with safe environment defaults."""
    raw_origins = get_env("CORS_ALLOW_ORIGINS", "") or ""
    parsed_origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]

    if parsed_origins:
        return parsed_origins

    if app_env().strip().lower() in {"dev", "local"}:
        return ["http://localhost:5173", "http://127.0.0.1:5173"]

    ui_origin = (get_env("UI_ORIGIN", "") or "").strip()
    if ui_origin:
        return [ui_origin]

    logger.warning(
        "cors_allow_origins_empty_in_prod app_env=%s; define CORS_ALLOW_ORIGINS or UI_ORIGIN",
        app_env(),
    )

    return []


def search_max_tags() -> int:
    """Return the maximum number of distinct tags accepted in one filter."""
    return _get_int("SEARCH_MAX_TAGS", 50)


def search_suggestion_min_length() -> int:
    """Return the shortest prefix accepted by the suggestion engine."""
    return _get_int("SEARCH_SUGGESTION_MIN_LENGTH", 2)


def search_suggestions_limit() -> int:
    """Return the default number of suggestions returned per call."""
    return _get_int("SEARCH_SUGGESTIONS_LIMIT", 10)


def search_timeout_seconds() -> float:
    """Return the default deadline applied to corpus scans."""
    return _get_float("SEARCH_TIMEOUT_SECONDS", 10.0)


def search_analytics_enabled() -> bool:
    """Return whether executed searches are appended to the search log."""
    raw_value = (get_env("SEARCH_ANALYTICS_ENABLED", "") or "").strip().lower()
    if not raw_value:
        return True
    return raw_value not in _FALSE_VALUES


def supabase_url() -> str | None:
    """Return Supabase URL when configured."""
    return get_env("SUPABASE_URL")


def supabase_service_role_key() -> str | None:
    """Return Supabase service role key when configured."""
    return get_env("SUPABASE_SERVICE_ROLE_KEY")


def supabase_anon_key() -> str | None:
    """Return Supabase anon key when configured."""
    return get_env("SUPABASE_ANON_KEY")
