from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Sequence
from .types import AllowListRef, AllowListSnapshot, IngressRuleSpec


class VersionedSetStore(ABC):
    name: str

    @abstractmethod
    def read(self, ref: AllowListRef) -> AllowListSnapshot:
        raise NotImplementedError

    @abstractmethod
    def conditional_write(self, ref: AllowListRef, entries: Sequence[str], version_token: str) -> None:
        """Replace the entry set, guarded by ``version_token``.

        Notes:
        - Raises StaleTokenError if another writer updated the resource since the read
          that produced ``version_token``.
        - Any other failure surfaces as a StoreError subclass.
        """
        raise NotImplementedError


class RuleStore(ABC):
    name: str

    @abstractmethod
    def create_rule(self, spec: IngressRuleSpec) -> None:
        """Raises DuplicateRuleError if an identical rule already exists."""
        raise NotImplementedError

    @abstractmethod
    def delete_rule(self, spec: IngressRuleSpec) -> None:
        """Raises RuleNotFoundError if the rule is absent."""
        raise NotImplementedError
