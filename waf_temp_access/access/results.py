"""Tagged results for grant/revoke and the record threaded from grant to revoke."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..store.types import AllowListRef


class Outcome(str, Enum):
    APPLIED = "APPLIED"
    ALREADY_SATISFIED = "ALREADY_SATISFIED"
    FAILED = "FAILED"


class FailureKind(str, Enum):
    LOCK_EXHAUSTED = "LOCK_EXHAUSTED"
    STORE_ERROR = "STORE_ERROR"
    RETRIES_EXHAUSTED = "RETRIES_EXHAUSTED"


@dataclass(frozen=True)
class MutationResult:
    action: str  # grant | revoke
    outcome: Outcome
    entry: str
    resource_id: str
    attempts: int
    failure_kind: Optional[FailureKind] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is not Outcome.FAILED


@dataclass(frozen=True)
class IpSetGrant:
    ref: AllowListRef
    entry: str


@dataclass(frozen=True)
class RuleGrant:
    group_id: str
    entry: str
    description: str
    region: str
    port: int = 443


@dataclass(frozen=True)
class GrantRecord:
    """Everything revoke needs to undo a grant phase. Empty means nothing to clean up."""

    address: str
    ip_set: Optional[IpSetGrant] = None
    rule: Optional[RuleGrant] = None

    def is_empty(self) -> bool:
        return self.ip_set is None and self.rule is None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"address": self.address}
        if self.ip_set is not None:
            ref = self.ip_set.ref
            out["ip_set"] = {
                "id": ref.id,
                "name": ref.name,
                "scope": ref.scope,
                "region": ref.region,
                "entry": self.ip_set.entry,
            }
        if self.rule is not None:
            out["security_group"] = {
                "group_id": self.rule.group_id,
                "entry": self.rule.entry,
                "description": self.rule.description,
                "region": self.rule.region,
                "port": self.rule.port,
            }
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GrantRecord":
        if not isinstance(data, dict):
            raise ValueError(f"grant record must be a JSON object, got {type(data).__name__}")
        ip_set = None
        rule = None
        raw_ip = data.get("ip_set")
        if raw_ip:
            ip_set = IpSetGrant(
                ref=AllowListRef(
                    id=str(raw_ip["id"]),
                    name=str(raw_ip["name"]),
                    scope=str(raw_ip["scope"]),
                    region=str(raw_ip["region"]),
                ),
                entry=str(raw_ip["entry"]),
            )
        raw_sg = data.get("security_group")
        if raw_sg:
            rule = RuleGrant(
                group_id=str(raw_sg["group_id"]),
                entry=str(raw_sg["entry"]),
                description=str(raw_sg.get("description", "")),
                region=str(raw_sg["region"]),
                port=int(raw_sg.get("port", 443)),
            )
        return cls(address=str(data.get("address", "")), ip_set=ip_set, rule=rule)
