from __future__ import annotations

import uuid
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .base import RuleStore, VersionedSetStore
from .errors import DuplicateRuleError, RuleNotFoundError, StaleTokenError
from .types import AllowListRef, AllowListSnapshot, IngressRuleSpec


def _rule_key(spec: IngressRuleSpec) -> Tuple[str, str, int, int, str]:
    return (spec.group_id, spec.protocol, spec.from_port, spec.to_port, spec.cidr)


class MemoryIpSetStore(VersionedSetStore):
    """A very small in-memory IPSet store for drills/tests.

    - Every successful write rotates the version token.
    - ``failures`` is a queue of exceptions raised by conditional_write, one per call,
      before the write is attempted (None entries let the call through).
    - ``read_failures`` does the same for read.
    """

    name = "memory"

    def __init__(
        self,
        entries: Iterable[str] = (),
        *,
        failures: Optional[Sequence[Optional[BaseException]]] = None,
        read_failures: Optional[Sequence[Optional[BaseException]]] = None,
    ):
        self.entries: List[str] = list(entries)
        self.version_token = uuid.uuid4().hex
        self.failures: List[Optional[BaseException]] = list(failures or [])
        self.read_failures: List[Optional[BaseException]] = list(read_failures or [])
        self.reads = 0
        self.write_attempts = 0
        self.writes = 0

    def read(self, ref: AllowListRef) -> AllowListSnapshot:
        self.reads += 1
        if self.read_failures:
            err = self.read_failures.pop(0)
            if err is not None:
                raise err
        return AllowListSnapshot(entries=tuple(self.entries), version_token=self.version_token)

    def conditional_write(self, ref: AllowListRef, entries: Sequence[str], version_token: str) -> None:
        self.write_attempts += 1
        if self.failures:
            err = self.failures.pop(0)
            if err is not None:
                raise err
        if version_token != self.version_token:
            raise StaleTokenError("version token is stale", code="WAFOptimisticLockException")
        self.entries = list(entries)
        self.version_token = uuid.uuid4().hex
        self.writes += 1

    def concurrent_update(self, entries: Iterable[str]) -> None:
        """Simulate another writer: replace entries and rotate the token."""
        self.entries = list(entries)
        self.version_token = uuid.uuid4().hex


class MemoryRuleStore(RuleStore):
    name = "memory"

    def __init__(
        self,
        rules: Iterable[IngressRuleSpec] = (),
        *,
        failures: Optional[Sequence[Optional[BaseException]]] = None,
    ):
        self._rules: Dict[Tuple[str, str, int, int, str], IngressRuleSpec] = {}
        for r in rules:
            self._rules[_rule_key(r)] = r
        self.failures: List[Optional[BaseException]] = list(failures or [])
        self.calls = 0

    def _maybe_fail(self) -> None:
        self.calls += 1
        if self.failures:
            err = self.failures.pop(0)
            if err is not None:
                raise err

    def create_rule(self, spec: IngressRuleSpec) -> None:
        self._maybe_fail()
        key = _rule_key(spec)
        if key in self._rules:
            raise DuplicateRuleError(f"rule for {spec.cidr} already exists", code="InvalidPermission.Duplicate")
        self._rules[key] = spec

    def delete_rule(self, spec: IngressRuleSpec) -> None:
        self._maybe_fail()
        key = _rule_key(spec)
        if key not in self._rules:
            raise RuleNotFoundError(f"rule for {spec.cidr} not found", code="InvalidPermission.NotFound")
        del self._rules[key]

    def cidrs(self, group_id: str) -> Set[str]:
        return {k[4] for k in self._rules if k[0] == group_id}
