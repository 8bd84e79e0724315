from marcus.core.backoff import NO_RETRY, RetryPolicy, compute_backoff_seconds


def test_backoff_growth_and_cap():
    first = compute_backoff_seconds(1, base=1, factor=2, max_seconds=10, jitter_pct=0.0)
    second = compute_backoff_seconds(2, base=1, factor=2, max_seconds=10, jitter_pct=0.0)
    third = compute_backoff_seconds(3, base=1, factor=2, max_seconds=10, jitter_pct=0.0)
    assert first == 1
    assert second == 2
    assert third == 4
    capped = compute_backoff_seconds(10, base=1, factor=2, max_seconds=5, jitter_pct=0.0)
    assert capped <= 5


def test_backoff_jitter_stays_in_band():
    for _ in range(50):
        delay = compute_backoff_seconds(2, base=1, factor=2, max_seconds=30, jitter_pct=0.1)
        assert 1.8 <= delay <= 2.2


def test_retry_after_overrides_and_is_capped():
    policy = RetryPolicy(max_seconds=10, jitter_pct=0.0)
    assert policy.delay_for(1) == 1
    assert policy.delay_for(1, retry_after=7) == 7
    assert policy.delay_for(1, retry_after=120) == 10


def test_no_retry_policy():
    assert NO_RETRY.max_attempts == 1


def test_policy_delay_follows_the_shared_curve():
    policy = RetryPolicy(base_seconds=0.5, factor=3, max_seconds=20, jitter_pct=0.0)
    for attempt in range(1, 6):
        assert policy.delay_for(attempt) == compute_backoff_seconds(
            attempt, base=0.5, factor=3, max_seconds=20
        )
    assert policy.delay_for(4) == 13.5
    assert policy.delay_for(5) == 20


def test_attempt_below_one_is_treated_as_first():
    assert compute_backoff_seconds(0, base=2) == 2
    assert compute_backoff_seconds(-3, base=2) == 2
