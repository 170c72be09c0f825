"""Error taxonomy shared by the search core and its HTTP surface."""

from __future__ import annotations

from enum import Enum


class SearchErrorCode(str, Enum):
    """Stable error codes exposed to callers."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    STORAGE_ERROR = "STORAGE_ERROR"
    TIMEOUT = "TIMEOUT"


class SearchError(Exception):
    """Base class for every error raised by the search core."""

    code: SearchErrorCode = SearchErrorCode.STORAGE_ERROR

    def __init__(self, message: str, *, details: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(SearchError):
    """Raised when caller input is malformed or out of range."""

    code = SearchErrorCode.VALIDATION_ERROR


class ConflictError(SearchError):
    """Raised when a uniqueness rule is violated."""

    code = SearchErrorCode.CONFLICT


class NotFoundError(SearchError):
    """Raised when a record is absent or not owned by the caller."""

    code = SearchErrorCode.NOT_FOUND


class StorageError(SearchError):
    """Raised when the corpus or persistence layer fails."""

    code = SearchErrorCode.STORAGE_ERROR


class SearchTimeoutError(SearchError):
    """Raised when an operation exceeds the caller-supplied deadline."""

    code = SearchErrorCode.TIMEOUT
