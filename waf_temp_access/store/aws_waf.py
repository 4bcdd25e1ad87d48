from __future__ import annotations

from typing import Any, Sequence

from .aws_common import AwsStoreMixin
from .base import VersionedSetStore
from .errors import StaleTokenError
from .types import AllowListRef, AllowListSnapshot

LOCK_CONFLICT_CODE = "WAFOptimisticLockException"


class WafIpSetStore(AwsStoreMixin, VersionedSetStore):
    """WAFv2 IPSet as a versioned allow-list (GetIPSet / UpdateIPSet with LockToken)."""

    name = "wafv2"

    def __init__(self, client: Any, *, metrics=None, service_name: str = "unknown"):
        self.client = client
        self.metrics = metrics
        self.service_name = service_name

    def read(self, ref: AllowListRef) -> AllowListSnapshot:
        resp = self._call(
            "GetIPSet",
            self.client.get_ip_set,
            Id=ref.id,
            Name=ref.name,
            Scope=ref.scope,
        )
        ip_set = resp.get("IPSet") or {}
        return AllowListSnapshot(
            entries=tuple(ip_set.get("Addresses") or ()),
            version_token=str(resp["LockToken"]),
        )

    def conditional_write(self, ref: AllowListRef, entries: Sequence[str], version_token: str) -> None:
        self._call(
            "UpdateIPSet",
            self.client.update_ip_set,
            special={LOCK_CONFLICT_CODE: StaleTokenError},
            Id=ref.id,
            Name=ref.name,
            Scope=ref.scope,
            Addresses=list(entries),
            LockToken=version_token,
        )
