
from __future__ import annotations

from typing import Optional, Tuple

import boto3

from .aws_ec2 import SecurityGroupRuleStore
from .aws_waf import WafIpSetStore
from .base import RuleStore, VersionedSetStore
from .memory import MemoryIpSetStore, MemoryRuleStore


def make_session(settings, *, region: Optional[str] = None) -> boto3.session.Session:
    """Explicit session: region/profile come from Settings, never from boto3's global default session.

    Credentials still resolve through the session's provider chain (env vars, web identity,
    instance role), which is what CI credential actions populate.
    """
    return boto3.session.Session(
        region_name=(region or settings.aws_region) or None,
        profile_name=settings.aws_profile or None,
    )


def make_stores(
    settings,
    *,
    ipset: bool,
    rules: bool,
    region: Optional[str] = None,
    session: Optional[boto3.session.Session] = None,
    metrics=None,
) -> Tuple[Optional[VersionedSetStore], Optional[RuleStore]]:
    """Build the (ipset_store, rule_store) pair; None for paths that are not wanted."""
    if settings.store_backend == "memory":
        return (
            MemoryIpSetStore() if ipset else None,
            MemoryRuleStore() if rules else None,
        )
    if not ipset and not rules:
        return None, None

    session = session or make_session(settings, region=region)
    ipset_store = None
    rule_store = None
    if ipset:
        ipset_store = WafIpSetStore(session.client("wafv2"), metrics=metrics, service_name=settings.service_name)
    if rules:
        rule_store = SecurityGroupRuleStore(session.client("ec2"), metrics=metrics, service_name=settings.service_name)
    return ipset_store, rule_store
