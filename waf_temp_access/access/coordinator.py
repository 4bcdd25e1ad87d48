"""Grant/revoke phase orchestration.

- grant() resolves the public address once, runs each configured mutator, and returns a
  GrantRecord holding only what this run actually added.
- revoke(record) undoes exactly that record and never raises.
"""

from __future__ import annotations

import os
from typing import Callable, List, Optional

from ..logging import get_logger, log, warn
from ..store.types import AllowListRef
from .errors import AccessGrantError
from .results import GrantRecord, IpSetGrant, MutationResult, Outcome, RuleGrant
from .unversioned import UnversionedRuleMutator
from .versioned import VersionedSetMutator

logger = get_logger("access_coordinator", os.getenv("LOG_LEVEL", "INFO"))


class AccessCoordinator:
    def __init__(
        self,
        settings,
        *,
        ip_set_mutator: Optional[VersionedSetMutator] = None,
        rule_mutator: Optional[UnversionedRuleMutator] = None,
        resolver: Optional[Callable[[], str]] = None,
        trace_id: str = "",
    ):
        self.settings = settings
        self.ip_set_mutator = ip_set_mutator
        self.rule_mutator = rule_mutator
        self.resolver = resolver
        self.trace_id = trace_id

    def _ip_set_ref(self) -> AllowListRef:
        s = self.settings
        return AllowListRef(id=s.ipset_id, name=s.ipset_name, scope=s.ipset_scope, region=s.aws_region)

    def grant(self, address: Optional[str] = None) -> GrantRecord:
        """Raises ResolverError before touching any resource, or AccessGrantError if a grant fails.

        If the security-group grant fails after the IPSet entry was added, the IPSet entry is
        revoked before re-raising so a failed grant phase leaves nothing behind.
        """
        if address is None:
            if self.resolver is None:
                raise ValueError("no address given and no resolver configured")
            log(logger, "Getting public IP address...", trace_id=self.trace_id)
            address = self.resolver()
            log(logger, "Public IP detected", ip=address, trace_id=self.trace_id)

        record = GrantRecord(address=address)

        if self.ip_set_mutator is not None:
            ref = self._ip_set_ref()
            log(
                logger,
                "Starting AWS WAF IPSet update",
                ipset=ref.name,
                ipset_id=ref.id,
                region=ref.region,
                trace_id=self.trace_id,
            )
            res = self.ip_set_mutator.grant(ref, address)
            if res.outcome is Outcome.APPLIED:
                record = GrantRecord(address=address, ip_set=IpSetGrant(ref=ref, entry=res.entry))

        if self.rule_mutator is not None:
            s = self.settings
            log(
                logger,
                "Starting Security Group update",
                group_id=s.security_group_id,
                region=s.aws_region,
                trace_id=self.trace_id,
            )
            try:
                res = self.rule_mutator.grant(s.security_group_id, address, s.sg_description)
            except AccessGrantError:
                if not record.is_empty():
                    warn(logger, "Security Group grant failed, rolling back IPSet entry", trace_id=self.trace_id)
                    self.revoke(record)
                raise
            if res.outcome is Outcome.APPLIED:
                record = GrantRecord(
                    address=address,
                    ip_set=record.ip_set,
                    rule=RuleGrant(
                        group_id=s.security_group_id,
                        entry=res.entry,
                        description=s.sg_description,
                        region=s.aws_region,
                        port=self.rule_mutator.port,
                    ),
                )
        return record

    def revoke(self, record: Optional[GrantRecord]) -> List[MutationResult]:
        results: List[MutationResult] = []
        if record is None or record.is_empty():
            log(logger, "No cleanup state found, skipping IP removal", trace_id=self.trace_id)
            return results

        if record.ip_set is not None:
            if self.ip_set_mutator is None:
                warn(logger, "IPSet cleanup state present but no IPSet store configured", trace_id=self.trace_id)
            else:
                g = record.ip_set
                log(
                    logger,
                    "Starting WAF cleanup",
                    entry=g.entry,
                    ipset=g.ref.name,
                    ipset_id=g.ref.id,
                    trace_id=self.trace_id,
                )
                results.append(self.ip_set_mutator.revoke(g.ref, g.entry))

        if record.rule is not None:
            if self.rule_mutator is None:
                warn(logger, "Security Group cleanup state present but no rule store configured", trace_id=self.trace_id)
            else:
                g = record.rule
                log(logger, "Starting Security Group cleanup", entry=g.entry, group_id=g.group_id, trace_id=self.trace_id)
                results.append(self.rule_mutator.revoke(g.group_id, g.entry, g.description, port=g.port))

        failed = [r for r in results if not r.ok]
        if failed:
            warn(logger, "Cleanup finished with warnings", failed=len(failed), trace_id=self.trace_id)
        else:
            log(logger, "All cleanup operations completed successfully", trace_id=self.trace_id)
        return results
