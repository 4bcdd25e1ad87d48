import random

import pytest
from prometheus_client import CollectorRegistry

from waf_temp_access.config import Settings
from waf_temp_access.store import AllowListRef, MemoryIpSetStore, MemoryRuleStore
from waf_temp_access.telemetry import Metrics


class SleepRecorder:
    """Stands in for time.sleep; records requested delays instead of blocking."""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def ref():
    return AllowListRef(id="ipset-123", name="ci-runners", scope="REGIONAL", region="eu-west-1")


@pytest.fixture
def ip_store():
    return MemoryIpSetStore(["198.51.100.7/32"])


@pytest.fixture
def rule_store():
    return MemoryRuleStore()


@pytest.fixture
def metrics():
    return Metrics("test", registry=CollectorRegistry())


@pytest.fixture
def settings(tmp_path):
    return Settings(
        aws_region="eu-west-1",
        aws_profile="",
        store_backend="memory",
        ipset_id="ipset-123",
        ipset_name="ci-runners",
        ipset_scope="REGIONAL",
        security_group_id="sg-0abc",
        sg_description="GitHub Actions runner",
        sg_port=443,
        state_file=str(tmp_path / "state.json"),
        github_output="",
        metrics_textfile="",
    )
