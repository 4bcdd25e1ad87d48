
from __future__ import annotations

import time
from typing import Callable, Optional

from ..store.factory import make_stores
from .backoff import unversioned_policy_from_settings, versioned_policy_from_settings
from .coordinator import AccessCoordinator
from .results import GrantRecord
from .unversioned import UnversionedRuleMutator
from .versioned import VersionedSetMutator


def make_coordinator(
    settings,
    *,
    record: Optional[GrantRecord] = None,
    resolver: Optional[Callable[[], str]] = None,
    session=None,
    metrics=None,
    sleep: Callable[[float], None] = time.sleep,
    trace_id: str = "",
) -> AccessCoordinator:
    """Wire stores -> mutators -> coordinator.

    Without a record the configured paths are used (grant phase). With a record only the
    paths that record holds are built, in the region the record was granted in, so a
    revoke does not depend on the environment still carrying the grant inputs.
    """
    if record is None:
        want_ipset = settings.ipset_enabled()
        want_rules = settings.security_group_enabled()
        region = settings.aws_region
    else:
        want_ipset = record.ip_set is not None
        want_rules = record.rule is not None
        region = record.ip_set.ref.region if record.ip_set else (record.rule.region if record.rule else None)

    ipset_store, rule_store = make_stores(
        settings, ipset=want_ipset, rules=want_rules, region=region, session=session, metrics=metrics
    )

    ip_set_mutator = None
    if ipset_store is not None:
        ip_set_mutator = VersionedSetMutator(
            ipset_store,
            policy=versioned_policy_from_settings(settings),
            sleep=sleep,
            metrics=metrics,
            service_name=settings.service_name,
        )
    rule_mutator = None
    if rule_store is not None:
        rule_mutator = UnversionedRuleMutator(
            rule_store,
            port=settings.sg_port,
            policy=unversioned_policy_from_settings(settings),
            sleep=sleep,
            metrics=metrics,
            service_name=settings.service_name,
        )
    return AccessCoordinator(
        settings,
        ip_set_mutator=ip_set_mutator,
        rule_mutator=rule_mutator,
        resolver=resolver,
        trace_id=trace_id,
    )
