import random

from waf_temp_access.access import UNVERSIONED_POLICY, VERSIONED_POLICY, RetryPolicy


def test_versioned_policy_constants():
    assert VERSIONED_POLICY.max_attempts == 10
    assert VERSIONED_POLICY.base_delay_seconds == 1.0
    assert VERSIONED_POLICY.jitter_seconds == 1.0


def test_unversioned_policy_constants():
    assert UNVERSIONED_POLICY.max_attempts == 5
    assert UNVERSIONED_POLICY.jitter_seconds == 0.0


def test_versioned_delay_within_jitter_window():
    rng = random.Random(7)
    for k in range(10):
        for _ in range(50):
            d = VERSIONED_POLICY.delay(k, rng)
            assert 2 ** k <= d < 2 ** k + 1.0


def test_unversioned_delay_is_exact():
    assert [UNVERSIONED_POLICY.delay(k) for k in range(5)] == [1.0, 2.0, 4.0, 8.0, 16.0]


def test_is_last():
    p = RetryPolicy(max_attempts=3)
    assert [p.is_last(k) for k in range(3)] == [False, False, True]
