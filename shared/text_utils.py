"""Text normalization helpers shared by search components."""

from __future__ import annotations

import re
import unicodedata


_TOKEN_PATTERN = re.compile(r"\w+", flags=re.UNICODE)


def normalize_text(value: str | None) -> str:
    """Lower-case, strip accents and collapse whitespace."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", value)
    without_accents = "".join(char for char in decomposed if not unicodedata.combining(char))
    return " ".join(without_accents.lower().split())


def tokenize(value: str | None) -> list[str]:
    """Return unique normalized word tokens in first-seen order."""
    tokens: list[str] = []
    for token in _TOKEN_PATTERN.findall(normalize_text(value)):
        if token not in tokens:
            tokens.append(token)
    return tokens


def words(value: str | None) -> list[str]:
    """Return every normalized word of a text, duplicates included."""
    return _TOKEN_PATTERN.findall(normalize_text(value))
