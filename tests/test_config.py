"""Tests for shared configuration helpers."""

from shared import config


def test_cors_allow_origins_defaults_in_dev(monkeypatch) -> None:
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.delenv("CORS_ALLOW_ORIGINS", raising=False)

    assert config.cors_allow_origins() == ["http://localhost:5173", "http://127.0.0.1:5173"]


def test_cors_allow_origins_parses_comma_separated_list(monkeypatch) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.com, https://b.com")

    assert config.cors_allow_origins() == ["https://a.com", "https://b.com"]


def test_cors_allow_origins_warns_and_defaults_to_empty_in_prod(monkeypatch, caplog) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.delenv("CORS_ALLOW_ORIGINS", raising=False)
    monkeypatch.delenv("UI_ORIGIN", raising=False)

    assert config.cors_allow_origins() == []
    assert "cors_allow_origins_empty_in_prod" in caplog.text


def test_search_limits_use_defaults_when_missing(monkeypatch) -> None:
    for name in ("SEARCH_MAX_TAGS", "SEARCH_SUGGESTION_MIN_LENGTH", "SEARCH_SUGGESTIONS_LIMIT", "SEARCH_TIMEOUT_SECONDS"):
        monkeypatch.delenv(name, raising=False)

    assert config.search_max_tags() == 50
    assert config.search_suggestion_min_length() == 2
    assert config.search_suggestions_limit() == 10
    assert config.search_timeout_seconds() == 10.0


def test_search_suggestions_limit_parses_env(monkeypatch) -> None:
    monkeypatch.setenv("SEARCH_SUGGESTIONS_LIMIT", "5")

    assert config.search_suggestions_limit() == 5


def test_search_max_tags_uses_default_on_invalid(monkeypatch, caplog) -> None:
    monkeypatch.setenv("SEARCH_MAX_TAGS", "many")

    assert config.search_max_tags() == 50
    assert "config_invalid_int" in caplog.text


def test_search_timeout_rejects_non_positive_values(monkeypatch) -> None:
    monkeypatch.setenv("SEARCH_TIMEOUT_SECONDS", "-1")

    assert config.search_timeout_seconds() == 10.0


def test_search_analytics_enabled_defaults_true(monkeypatch) -> None:
    monkeypatch.delenv("SEARCH_ANALYTICS_ENABLED", raising=False)

    assert config.search_analytics_enabled() is True


def test_search_analytics_enabled_false_string(monkeypatch) -> None:
    monkeypatch.setenv("SEARCH_ANALYTICS_ENABLED", "False")

    assert config.search_analytics_enabled() is False
