from __future__ import annotations

from typing import Any, Dict, List

from .aws_common import AwsStoreMixin
from .base import RuleStore
from .errors import DuplicateRuleError, RuleNotFoundError
from .types import IngressRuleSpec


def _ip_permissions(spec: IngressRuleSpec) -> List[Dict[str, Any]]:
    ip_range: Dict[str, Any] = {"CidrIp": spec.cidr}
    if spec.description:
        ip_range["Description"] = spec.description
    return [
        {
            "IpProtocol": spec.protocol,
            "FromPort": spec.from_port,
            "ToPort": spec.to_port,
            "IpRanges": [ip_range],
        }
    ]


class SecurityGroupRuleStore(AwsStoreMixin, RuleStore):
    """EC2 security-group ingress rules. No versioning: EC2 reports duplicates/absences itself."""

    name = "ec2"

    def __init__(self, client: Any, *, metrics=None, service_name: str = "unknown"):
        self.client = client
        self.metrics = metrics
        self.service_name = service_name

    def create_rule(self, spec: IngressRuleSpec) -> None:
        self._call(
            "AuthorizeSecurityGroupIngress",
            self.client.authorize_security_group_ingress,
            special={"InvalidPermission.Duplicate": DuplicateRuleError},
            GroupId=spec.group_id,
            IpPermissions=_ip_permissions(spec),
        )

    def delete_rule(self, spec: IngressRuleSpec) -> None:
        resp = self._call(
            "RevokeSecurityGroupIngress",
            self.client.revoke_security_group_ingress,
            special={"InvalidPermission.NotFound": RuleNotFoundError},
            GroupId=spec.group_id,
            IpPermissions=_ip_permissions(spec),
        )
        # newer EC2 API versions answer 200 and list the rules they could not match
        if resp.get("UnknownIpPermissions"):
            raise RuleNotFoundError(
                f"rule for {spec.cidr} not found in {spec.group_id}", code="InvalidPermission.NotFound"
            )
