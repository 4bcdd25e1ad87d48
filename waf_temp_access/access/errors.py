from __future__ import annotations

from typing import Optional

from .results import FailureKind


class AccessGrantError(Exception):
    """Fatal grant failure. ``kind`` tells lock exhaustion apart from store problems."""

    def __init__(self, message: str, *, kind: FailureKind, attempts: int = 0, entry: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.attempts = attempts
        self.entry = entry


class LockExhaustedError(AccessGrantError):
    def __init__(self, message: str, *, attempts: int, entry: Optional[str] = None):
        super().__init__(message, kind=FailureKind.LOCK_EXHAUSTED, attempts=attempts, entry=entry)
