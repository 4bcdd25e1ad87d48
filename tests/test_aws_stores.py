import boto3
import pytest
from botocore.stub import Stubber

from waf_temp_access.store import (
    AllowListRef,
    AuthError,
    DuplicateRuleError,
    IngressRuleSpec,
    RuleNotFoundError,
    StaleTokenError,
    StoreError,
    TemporaryError,
)
from waf_temp_access.store.aws_ec2 import SecurityGroupRuleStore
from waf_temp_access.store.aws_waf import WafIpSetStore

REF = AllowListRef(id="a1b2c3d4-0000-1111-2222-333344445555", name="ci-runners", scope="REGIONAL", region="eu-west-1")
KEY = {"Id": REF.id, "Name": REF.name, "Scope": REF.scope}
RULE = IngressRuleSpec(group_id="sg-0abc", cidr="203.0.113.5/32", description="GitHub Actions runner")
PERMS = [
    {
        "IpProtocol": "tcp",
        "FromPort": 443,
        "ToPort": 443,
        "IpRanges": [{"CidrIp": "203.0.113.5/32", "Description": "GitHub Actions runner"}],
    }
]


@pytest.fixture
def session():
    return boto3.session.Session(
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        region_name="eu-west-1",
    )


def _ip_set_response(addresses, token):
    return {
        "IPSet": {
            "Name": REF.name,
            "Id": REF.id,
            "ARN": f"arn:aws:wafv2:eu-west-1:123456789012:regional/ipset/{REF.name}/{REF.id}",
            "IPAddressVersion": "IPV4",
            "Addresses": addresses,
        },
        "LockToken": token,
    }


def test_waf_read_returns_entries_and_lock_token(session):
    client = session.client("wafv2")
    with Stubber(client) as stub:
        stub.add_response("get_ip_set", _ip_set_response(["198.51.100.7/32"], "tok-1"), KEY)
        snap = WafIpSetStore(client).read(REF)
    assert snap.entries == ("198.51.100.7/32",)
    assert snap.version_token == "tok-1"


def test_waf_conditional_write_sends_lock_token(session):
    client = session.client("wafv2")
    with Stubber(client) as stub:
        stub.add_response(
            "update_ip_set",
            {"NextLockToken": "tok-2"},
            {**KEY, "Addresses": ["198.51.100.7/32", "203.0.113.5/32"], "LockToken": "tok-1"},
        )
        WafIpSetStore(client).conditional_write(REF, ["198.51.100.7/32", "203.0.113.5/32"], "tok-1")
        stub.assert_no_pending_responses()


@pytest.mark.parametrize(
    "code,expected",
    [
        ("WAFOptimisticLockException", StaleTokenError),
        ("AccessDeniedException", AuthError),
        ("WAFInternalErrorException", TemporaryError),
        ("WAFNonexistentItemException", StoreError),
    ],
)
def test_waf_error_mapping(session, code, expected):
    client = session.client("wafv2")
    with Stubber(client) as stub:
        stub.add_client_error("update_ip_set", service_error_code=code, service_message="nope", http_status_code=400)
        with pytest.raises(expected) as ei:
            WafIpSetStore(client).conditional_write(REF, ["203.0.113.5/32"], "tok-1")
    assert ei.value.code == code


def test_stale_token_is_only_raised_for_lock_conflicts(session):
    client = session.client("wafv2")
    with Stubber(client) as stub:
        stub.add_client_error("get_ip_set", service_error_code="WAFOptimisticLockException", http_status_code=400)
        with pytest.raises(StoreError) as ei:
            WafIpSetStore(client).read(REF)
    assert not isinstance(ei.value, StaleTokenError)


def test_waf_requests_are_counted(session, metrics):
    client = session.client("wafv2")
    with Stubber(client) as stub:
        stub.add_response("get_ip_set", _ip_set_response([], "tok-1"), KEY)
        WafIpSetStore(client, metrics=metrics, service_name="svc").read(REF)
    assert metrics.registry.get_sample_value(
        "store_requests_total", {"service": "svc", "store": "wafv2", "operation": "GetIPSet", "status": "ok"}
    ) == 1


def test_ec2_create_rule(session):
    client = session.client("ec2")
    with Stubber(client) as stub:
        stub.add_response("authorize_security_group_ingress", {"Return": True}, {"GroupId": "sg-0abc", "IpPermissions": PERMS})
        SecurityGroupRuleStore(client).create_rule(RULE)
        stub.assert_no_pending_responses()


def test_ec2_duplicate_maps_to_duplicate_rule(session):
    client = session.client("ec2")
    with Stubber(client) as stub:
        stub.add_client_error("authorize_security_group_ingress", service_error_code="InvalidPermission.Duplicate")
        with pytest.raises(DuplicateRuleError):
            SecurityGroupRuleStore(client).create_rule(RULE)


def test_ec2_not_found_maps_to_rule_not_found(session):
    client = session.client("ec2")
    with Stubber(client) as stub:
        stub.add_client_error("revoke_security_group_ingress", service_error_code="InvalidPermission.NotFound")
        with pytest.raises(RuleNotFoundError):
            SecurityGroupRuleStore(client).delete_rule(RULE)


def test_ec2_unknown_permissions_response_maps_to_rule_not_found(session):
    client = session.client("ec2")
    with Stubber(client) as stub:
        stub.add_response(
            "revoke_security_group_ingress",
            {"Return": True, "UnknownIpPermissions": PERMS},
            {"GroupId": "sg-0abc", "IpPermissions": PERMS},
        )
        with pytest.raises(RuleNotFoundError):
            SecurityGroupRuleStore(client).delete_rule(RULE)


def test_ec2_throttling_is_temporary(session):
    client = session.client("ec2")
    with Stubber(client) as stub:
        stub.add_client_error("revoke_security_group_ingress", service_error_code="RequestLimitExceeded")
        with pytest.raises(TemporaryError):
            SecurityGroupRuleStore(client).delete_rule(RULE)
