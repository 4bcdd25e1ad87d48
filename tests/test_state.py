import json

import pytest

from waf_temp_access.access import GrantRecord, IpSetGrant, RuleGrant, clear_state, load_state, save_state
from waf_temp_access.store import AllowListRef


def test_save_load_clear(tmp_path):
    path = str(tmp_path / "nested" / "state.json")
    record = GrantRecord(
        address="203.0.113.5",
        ip_set=IpSetGrant(
            ref=AllowListRef(id="ipset-123", name="ci-runners", scope="CLOUDFRONT", region="us-east-1"),
            entry="203.0.113.5/32",
        ),
        rule=RuleGrant(group_id="sg-0abc", entry="203.0.113.5/32", description="ci", region="us-east-1", port=8443),
    )
    save_state(path, record)
    assert load_state(path) == record

    clear_state(path)
    assert load_state(path) is None
    clear_state(path)  # already gone


def test_missing_state_means_nothing_to_clean(tmp_path):
    assert load_state(str(tmp_path / "absent.json")) is None


def test_corrupt_state_raises_value_error(tmp_path):
    p = tmp_path / "state.json"
    p.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_state(str(p))

    p.write_text(json.dumps({"address": "1.2.3.4", "ip_set": {"id": "x"}}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_state(str(p))


@pytest.mark.parametrize("payload", [[], "x", 1, None])
def test_state_that_is_not_an_object_raises_value_error(tmp_path, payload):
    p = tmp_path / "state.json"
    p.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(ValueError):
        load_state(str(p))
