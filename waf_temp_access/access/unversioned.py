"""Add/remove a single ingress rule on a resource without a version token.

The store itself reports "duplicate rule" / "rule not found"; both mean the resource is
already in the desired state. A duplicate seen on a retry counts as applied, since the
failed attempt before it may have created the rule. Every other error is retried with
plain exponential backoff.
"""

from __future__ import annotations

import os
import time
from typing import Callable, Optional, Tuple, Type

from ..logging import get_logger, log, warn
from ..store.base import RuleStore
from ..store.errors import DuplicateRuleError, RuleNotFoundError, StoreError
from ..store.types import IngressRuleSpec
from .backoff import UNVERSIONED_POLICY, RetryPolicy
from .cidr import to_cidr
from .errors import AccessGrantError
from .results import FailureKind, MutationResult, Outcome

logger = get_logger("rule_mutator", os.getenv("LOG_LEVEL", "INFO"))

PATH = "unversioned"


class UnversionedRuleMutator:
    def __init__(
        self,
        store: RuleStore,
        *,
        port: int = 443,
        protocol: str = "tcp",
        policy: RetryPolicy = UNVERSIONED_POLICY,
        sleep: Callable[[float], None] = time.sleep,
        metrics=None,
        service_name: str = "unknown",
    ):
        self.store = store
        self.port = int(port)
        self.protocol = protocol
        self.policy = policy
        self.sleep = sleep
        self.metrics = metrics
        self.service_name = service_name

    def _spec(self, group_id: str, entry: str, description: str, port: Optional[int]) -> IngressRuleSpec:
        port = self.port if port is None else int(port)
        return IngressRuleSpec(
            group_id=group_id,
            cidr=entry,
            description=description,
            protocol=self.protocol,
            from_port=port,
            to_port=port,
        )

    def _count(self, action: str, outcome: Outcome) -> None:
        if self.metrics is not None:
            self.metrics.mutations_total.labels(self.service_name, PATH, action, outcome.value).inc()

    def _attempt_loop(
        self,
        action: str,
        op: Callable[[IngressRuleSpec], None],
        spec: IngressRuleSpec,
        benign: Type[StoreError],
    ) -> Tuple[Outcome, int]:
        """Returns (outcome, attempts). Raises the last error once the budget is spent."""
        for attempt in range(self.policy.max_attempts):
            try:
                log(
                    logger,
                    "Updating Security Group",
                    action=action,
                    group_id=spec.group_id,
                    entry=spec.cidr,
                    attempt=attempt + 1,
                )
                op(spec)
                return Outcome.APPLIED, attempt + 1
            except benign:
                return Outcome.ALREADY_SATISFIED, attempt + 1
            except Exception as e:
                warn(
                    logger,
                    "Security Group attempt failed",
                    action=action,
                    group_id=spec.group_id,
                    attempt=attempt + 1,
                    max_attempts=self.policy.max_attempts,
                    error=f"{type(e).__name__}: {e}",
                )
                if self.policy.is_last(attempt):
                    raise
                delay = self.policy.delay(attempt)
                if self.metrics is not None:
                    self.metrics.mutation_retries_total.labels(self.service_name, PATH, action).inc()
                    self.metrics.retry_backoff_seconds.labels(self.service_name, PATH).observe(delay)
                self.sleep(delay)
        raise AssertionError("unreachable")  # max_attempts >= 1

    def grant(self, group_id: str, address: str, description: str = "", *, port: Optional[int] = None) -> MutationResult:
        entry = to_cidr(address)
        spec = self._spec(group_id, entry, description, port)
        try:
            outcome, attempts = self._attempt_loop("grant", self.store.create_rule, spec, DuplicateRuleError)
        except Exception as e:
            self._count("grant", Outcome.FAILED)
            raise AccessGrantError(
                f"Failed to add {entry} to Security Group {group_id} after {self.policy.max_attempts} attempts: {e}",
                kind=FailureKind.RETRIES_EXHAUSTED,
                attempts=self.policy.max_attempts,
                entry=entry,
            ) from e

        if outcome is Outcome.ALREADY_SATISFIED and attempts > 1:
            # an earlier failed attempt may have created the rule; own it so revoke removes it
            log(logger, "Rule present after failed attempt, recording it for cleanup", entry=entry, group_id=group_id)
            outcome = Outcome.APPLIED
        if outcome is Outcome.ALREADY_SATISFIED:
            log(logger, "IP is already allowed in Security Group", entry=entry, group_id=group_id)
        else:
            log(logger, "Successfully added IP to Security Group", entry=entry, group_id=group_id, attempts=attempts)
        self._count("grant", outcome)
        return MutationResult(action="grant", outcome=outcome, entry=entry, resource_id=group_id, attempts=attempts)

    def revoke(self, group_id: str, address: str, description: str = "", *, port: Optional[int] = None) -> MutationResult:
        entry = to_cidr(address)
        spec = self._spec(group_id, entry, description, port)
        try:
            outcome, attempts = self._attempt_loop("revoke", self.store.delete_rule, spec, RuleNotFoundError)
        except Exception as e:
            warn(
                logger,
                "Failed to cleanup IP from Security Group. Manual cleanup may be required.",
                entry=entry,
                group_id=group_id,
                attempts=self.policy.max_attempts,
                error=f"{type(e).__name__}: {e}",
            )
            self._count("revoke", Outcome.FAILED)
            return MutationResult(
                action="revoke",
                outcome=Outcome.FAILED,
                entry=entry,
                resource_id=group_id,
                attempts=self.policy.max_attempts,
                failure_kind=FailureKind.RETRIES_EXHAUSTED,
                error=str(e),
            )

        if outcome is Outcome.ALREADY_SATISFIED:
            log(logger, "IP is not in Security Group, no cleanup needed", entry=entry, group_id=group_id)
        else:
            log(logger, "Successfully removed IP from Security Group", entry=entry, group_id=group_id, attempts=attempts)
        self._count("revoke", outcome)
        return MutationResult(action="revoke", outcome=outcome, entry=entry, resource_id=group_id, attempts=attempts)
