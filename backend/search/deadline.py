"""Caller-supplied deadlines for corpus scans."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from shared.errors import SearchTimeoutError


@dataclass(slots=True)
class Deadline:
    """Absolute monotonic deadline; `expires_at=None` never expires."""

    expires_at: float | None = None
    clock: Callable[[], float] = time.monotonic

    @classmethod
    def after(cls, timeout: float | None, *, clock: Callable[[], float] = time.monotonic) -> "Deadline":
        if timeout is None:
            return cls(expires_at=None, clock=clock)
        if timeout <= 0:
            raise SearchTimeoutError("Deadline already expired", details={"timeout": timeout})
        return cls(expires_at=clock() + timeout, clock=clock)

    def remaining(self, operation: str) -> float | None:
        """Seconds left before expiry, or None when unbounded."""
        if self.expires_at is None:
            return None
        left = self.expires_at - self.clock()
        if left <= 0:
            raise SearchTimeoutError(f"{operation} exceeded its deadline")
        return left

    def check(self, operation: str) -> None:
        if self.expires_at is not None and self.clock() >= self.expires_at:
            raise SearchTimeoutError(f"{operation} exceeded its deadline")
