
from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

ALLOWED_SCOPES = ("CLOUDFRONT", "REGIONAL")


@dataclass(frozen=True)
class AllowListRef:
    id: str
    name: str
    scope: str
    region: str

    def __post_init__(self) -> None:
        if self.scope not in ALLOWED_SCOPES:
            raise ValueError(f"Invalid scope: {self.scope}. Must be CLOUDFRONT or REGIONAL")


@dataclass(frozen=True)
class AllowListSnapshot:
    entries: Tuple[str, ...]
    version_token: str


@dataclass(frozen=True)
class IngressRuleSpec:
    group_id: str
    cidr: str
    description: str = ""
    protocol: str = "tcp"
    from_port: int = 443
    to_port: int = 443
