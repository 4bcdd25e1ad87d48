from __future__ import annotations

from typing import Optional


class StoreError(Exception):
    """Base class for backing-store errors."""

    def __init__(self, message: str = "", *, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class StaleTokenError(StoreError):
    """Conditional write rejected: the version token no longer matches."""
    pass


class DuplicateRuleError(StoreError):
    pass


class RuleNotFoundError(StoreError):
    pass


class AuthError(StoreError):
    pass


class TemporaryError(StoreError):
    pass
