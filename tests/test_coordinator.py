import pytest

from waf_temp_access.access import (
    AccessCoordinator,
    AccessGrantError,
    GrantRecord,
    Outcome,
    UnversionedRuleMutator,
    VersionedSetMutator,
)
from waf_temp_access.net import ResolverError
from waf_temp_access.store import IngressRuleSpec, MemoryIpSetStore, MemoryRuleStore, TemporaryError


def _coordinator(settings, ip_store, rule_store, sleeper, resolver=None):
    return AccessCoordinator(
        settings,
        ip_set_mutator=VersionedSetMutator(ip_store, sleep=sleeper) if ip_store is not None else None,
        rule_mutator=UnversionedRuleMutator(rule_store, sleep=sleeper) if rule_store is not None else None,
        resolver=resolver or (lambda: "203.0.113.5"),
    )


def test_grant_then_revoke_round_trip(settings, ip_store, rule_store, sleeper):
    c = _coordinator(settings, ip_store, rule_store, sleeper)
    record = c.grant()
    assert record.address == "203.0.113.5"
    assert record.ip_set.entry == "203.0.113.5/32"
    assert record.ip_set.ref.id == "ipset-123"
    assert record.rule.entry == "203.0.113.5/32"
    assert record.rule.group_id == "sg-0abc"
    assert "203.0.113.5/32" in ip_store.entries
    assert rule_store.cidrs("sg-0abc") == {"203.0.113.5/32"}

    results = c.revoke(record)
    assert [r.outcome for r in results] == [Outcome.APPLIED, Outcome.APPLIED]
    assert ip_store.entries == ["198.51.100.7/32"]
    assert rule_store.cidrs("sg-0abc") == set()


def test_explicit_address_skips_resolver(settings, ip_store, sleeper):
    def resolver():
        raise AssertionError("resolver must not be called")

    c = _coordinator(settings, ip_store, None, sleeper, resolver=resolver)
    record = c.grant("192.0.2.44")
    assert record.ip_set.entry == "192.0.2.44/32"


def test_preexisting_entry_is_not_recorded_for_cleanup(settings, sleeper):
    ip_store = MemoryIpSetStore(["203.0.113.5/32"])
    c = _coordinator(settings, ip_store, None, sleeper)
    record = c.grant()
    assert record.is_empty()
    assert c.revoke(record) == []
    assert ip_store.entries == ["203.0.113.5/32"]


def test_resolver_failure_touches_nothing(settings, ip_store, rule_store, sleeper):
    def resolver():
        raise ResolverError("offline")

    c = _coordinator(settings, ip_store, rule_store, sleeper, resolver=resolver)
    with pytest.raises(ResolverError):
        c.grant()
    assert ip_store.reads == 0
    assert rule_store.calls == 0


def test_failed_rule_grant_rolls_back_ipset_entry(settings, ip_store, sleeper):
    rule_store = MemoryRuleStore(failures=[TemporaryError("throttled")] * 5)
    c = _coordinator(settings, ip_store, rule_store, sleeper)
    with pytest.raises(AccessGrantError):
        c.grant()
    assert ip_store.entries == ["198.51.100.7/32"]


class _LostAckRuleStore(MemoryRuleStore):
    """Applies the first create but reports it as a timeout."""

    def __init__(self):
        super().__init__()
        self.lost = False

    def create_rule(self, spec):
        if not self.lost:
            self.lost = True
            super().create_rule(spec)
            raise TemporaryError("read timeout")
        super().create_rule(spec)


def test_rule_created_by_failed_attempt_is_revoked(settings, ip_store, sleeper):
    rule_store = _LostAckRuleStore()
    c = _coordinator(settings, ip_store, rule_store, sleeper)
    record = c.grant()
    assert record.rule is not None
    assert record.rule.entry == "203.0.113.5/32"
    assert rule_store.cidrs("sg-0abc") == {"203.0.113.5/32"}

    c.revoke(record)
    assert rule_store.cidrs("sg-0abc") == set()


def test_revoke_never_raises_and_reports_failures(settings, ip_store, sleeper):
    rule_store = MemoryRuleStore([IngressRuleSpec(group_id="sg-0abc", cidr="203.0.113.5/32")])
    c = _coordinator(settings, ip_store, rule_store, sleeper)
    record = c.grant()  # duplicate rule: only the IPSet entry is ours
    assert record.rule is None
    rule_store.failures = [TemporaryError("throttled")] * 5

    record = GrantRecord.from_dict({**record.to_dict(), "security_group": {
        "group_id": "sg-0abc", "entry": "203.0.113.5/32", "description": "", "region": "eu-west-1", "port": 443,
    }})
    results = c.revoke(record)
    assert results[0].outcome is Outcome.APPLIED
    assert results[1].outcome is Outcome.FAILED


def test_revoke_empty_record(settings, ip_store, rule_store, sleeper):
    c = _coordinator(settings, ip_store, rule_store, sleeper)
    assert c.revoke(None) == []
    assert c.revoke(GrantRecord(address="203.0.113.5")) == []
