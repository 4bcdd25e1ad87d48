"""Add/remove one CIDR entry in a versioned allow-list under optimistic locking.

Protocol (per attempt):
  1. read entries + version token
  2. if the entry is already in the desired state -> ALREADY_SATISFIED, no write
  3. conditional write of the new entry set, presenting the token from step 1
  4. StaleTokenError -> sleep (jittered exponential backoff) and start over from 1

Every write is derived from the read just before it, so a concurrent writer's update is
never clobbered; a lost race becomes a retry. Any other store error is not a concurrency
problem and is not retried.

grant raises AccessGrantError on failure; revoke never raises (cleanup is best-effort).
"""

from __future__ import annotations

import os
import random
import time
from typing import Callable, List, Optional, Sequence, Tuple

from ..logging import get_logger, log, warn
from ..store.base import VersionedSetStore
from ..store.errors import StaleTokenError
from ..store.types import AllowListRef
from .backoff import VERSIONED_POLICY, RetryPolicy
from .cidr import to_cidr
from .errors import AccessGrantError, LockExhaustedError
from .results import FailureKind, MutationResult, Outcome

logger = get_logger("versioned_mutator", os.getenv("LOG_LEVEL", "INFO"))

PATH = "versioned"

# (current entries, entry) -> new entries, or None when nothing needs to change
Planner = Callable[[Sequence[str], str], Optional[List[str]]]


def _plan_add(current: Sequence[str], entry: str) -> Optional[List[str]]:
    if entry in current:
        return None
    return [*current, entry]


def _plan_remove(current: Sequence[str], entry: str) -> Optional[List[str]]:
    if entry not in current:
        return None
    return [e for e in current if e != entry]


class VersionedSetMutator:
    def __init__(
        self,
        store: VersionedSetStore,
        *,
        policy: RetryPolicy = VERSIONED_POLICY,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
        metrics=None,
        service_name: str = "unknown",
    ):
        self.store = store
        self.policy = policy
        self.sleep = sleep
        self.rng = rng
        self.metrics = metrics
        self.service_name = service_name

    def _inc(self, metric_name: str, *labels: str) -> None:
        if self.metrics is None:
            return
        getattr(self.metrics, metric_name).labels(self.service_name, PATH, *labels).inc()

    def _backoff(self, action: str, attempt: int) -> None:
        delay = self.policy.delay(attempt, self.rng)
        warn(
            logger,
            "Lock conflict detected, retrying",
            action=action,
            delay_seconds=round(delay, 3),
            attempt=attempt + 1,
            max_attempts=self.policy.max_attempts,
        )
        if self.metrics is not None:
            self.metrics.mutation_retries_total.labels(self.service_name, PATH, action).inc()
            self.metrics.retry_backoff_seconds.labels(self.service_name, PATH).observe(delay)
        self.sleep(delay)

    def _mutate(self, action: str, ref: AllowListRef, entry: str, plan: Planner) -> Tuple[Outcome, int]:
        """Run the read-check-write loop. Returns (outcome, attempts used).

        Raises LockExhaustedError when every attempt lost the race, and AccessGrantError
        (kind=STORE_ERROR) on the first failure that is not a stale token.
        """
        for attempt in range(self.policy.max_attempts):
            try:
                log(logger, "Getting current IPSet state", action=action, ipset=ref.name, attempt=attempt + 1)
                snapshot = self.store.read(ref)
                new_entries = plan(snapshot.entries, entry)
                if new_entries is None:
                    return Outcome.ALREADY_SATISFIED, attempt + 1

                log(logger, "Writing IPSet", action=action, ipset=ref.name, entry=entry, entries=len(new_entries))
                self.store.conditional_write(ref, new_entries, snapshot.version_token)
                return Outcome.APPLIED, attempt + 1
            except StaleTokenError:
                self._inc("lock_conflicts_total", action)
                if self.policy.is_last(attempt):
                    break
                self._backoff(action, attempt)
            except Exception as e:
                raise AccessGrantError(
                    f"Failed to {action} {entry} on IPSet {ref.name}: {e}",
                    kind=FailureKind.STORE_ERROR,
                    attempts=attempt + 1,
                    entry=entry,
                ) from e

        raise LockExhaustedError(
            f"Failed to {action} {entry} on IPSet {ref.name} after {self.policy.max_attempts} attempts due to lock conflicts",
            attempts=self.policy.max_attempts,
            entry=entry,
        )

    def _result(self, action: str, ref: AllowListRef, entry: str, outcome: Outcome, attempts: int, **kw) -> MutationResult:
        self._inc("mutations_total", action, outcome.value)
        return MutationResult(action=action, outcome=outcome, entry=entry, resource_id=ref.id, attempts=attempts, **kw)

    def grant(self, ref: AllowListRef, address: str) -> MutationResult:
        entry = to_cidr(address)
        try:
            outcome, attempts = self._mutate("grant", ref, entry, _plan_add)
        except AccessGrantError:
            self._inc("mutations_total", "grant", Outcome.FAILED.value)
            raise

        if outcome is Outcome.ALREADY_SATISFIED:
            log(logger, "IP is already in the IPSet", entry=entry, ipset=ref.name)
        else:
            log(logger, "Successfully added IP to IPSet", entry=entry, ipset=ref.name, attempts=attempts)
        return self._result("grant", ref, entry, outcome, attempts)

    def revoke(self, ref: AllowListRef, address: str) -> MutationResult:
        entry = to_cidr(address)
        try:
            outcome, attempts = self._mutate("revoke", ref, entry, _plan_remove)
        except AccessGrantError as e:
            if e.kind is FailureKind.LOCK_EXHAUSTED:
                msg = "Failed to cleanup IP after exhausting lock retries. Manual cleanup may be required."
            else:
                msg = "Cleanup failed. Manual cleanup may be required."
            warn(
                logger,
                msg,
                entry=entry,
                ipset=ref.name,
                attempts=e.attempts,
                error=str(e.__cause__ or e),
            )
            return self._result(
                "revoke", ref, entry, Outcome.FAILED, e.attempts,
                failure_kind=e.kind, error=str(e),
            )

        if outcome is Outcome.ALREADY_SATISFIED:
            log(logger, "IP is not in the IPSet, no cleanup needed", entry=entry, ipset=ref.name)
        else:
            log(logger, "Successfully removed IP from IPSet", entry=entry, ipset=ref.name, attempts=attempts)
        return self._result("revoke", ref, entry, outcome, attempts)
