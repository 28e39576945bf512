"""Tests for the rate-limit policy: thresholds, cooldown, ban precedence and delay growth."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from storegate.config import Settings
from storegate.services.policy import (
    AttemptRecord, PolicyConfig, RateLimitPolicy, Verdict, format_retry_after
)


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def policy():
    return RateLimitPolicy()


def fail(policy, record, times, now=NOW):
    for _ in range(times):
        record = policy.apply_failure(record, now)
    return record


class TestEvaluate:
    def test_missing_record_is_allowed(self, policy):
        decision = policy.evaluate(None, NOW)
        assert decision.verdict == Verdict.ALLOW
        assert decision.allowed
        assert decision.delay_ms == 0

    def test_one_failure_allowed_without_delay(self, policy):
        record = fail(policy, AttemptRecord.clean("10_0_0_1", "10.0.0.1"), 1)
        decision = policy.evaluate(record, NOW)
        assert decision.allowed
        assert decision.delay_ms == 0
        assert record.cooldown_until is None

    def test_second_failure_starts_cooldown(self, policy):
        record = fail(policy, AttemptRecord.clean("10_0_0_1", "10.0.0.1"), 2)
        assert record.cooldown_until == NOW + timedelta(seconds=60)

        decision = policy.evaluate(record, NOW + timedelta(seconds=1))
        assert decision.verdict == Verdict.COOLDOWN
        assert not decision.allowed
        assert decision.retry_after == 59
        assert "59 seconds" in decision.reason

    def test_cooldown_expires_at_boundary(self, policy):
        record = fail(policy, AttemptRecord.clean("10_0_0_1", "10.0.0.1"), 2)
        until = record.cooldown_until

        assert not policy.evaluate(record, until - timedelta(microseconds=1)).allowed
        after = policy.evaluate(record, until)
        assert after.allowed
        assert after.verdict == Verdict.DELAY

    def test_retry_after_never_zero(self, policy):
        record = fail(policy, AttemptRecord.clean("k", "ip"), 2)
        decision = policy.evaluate(record, record.cooldown_until - timedelta(milliseconds=10))
        assert decision.retry_after == 1

    def test_ban_beats_expired_cooldown(self, policy):
        record = AttemptRecord(
            identity="k", ip_address="10.0.0.9", failed_attempts=1,
            cooldown_until=NOW - timedelta(minutes=5), banned=True, banned_at=NOW,
        )
        decision = policy.evaluate(record, NOW)
        assert decision.verdict == Verdict.BAN
        assert decision.reason == "IP address 10.0.0.9 blocked"

    def test_ban_beats_active_cooldown(self, policy):
        record = AttemptRecord(
            identity="k", ip_address="10.0.0.9",
            cooldown_until=NOW + timedelta(minutes=5), banned=True,
        )
        assert policy.evaluate(record, NOW).verdict == Verdict.BAN

    def test_failure_count_at_threshold_counts_as_ban(self, policy):
        record = AttemptRecord(identity="k", ip_address="ip", failed_attempts=5)
        assert policy.evaluate(record, NOW).verdict == Verdict.BAN


class TestApplyFailure:
    def test_failures_strictly_increase(self, policy):
        record = AttemptRecord.clean("k", "ip")
        seen = []
        for i in range(8):
            record = policy.apply_failure(record, NOW + timedelta(minutes=i * 2))
            seen.append(record.failed_attempts)
        assert seen == list(range(1, 9))

    def test_ban_at_threshold_and_sticky(self, policy):
        record = AttemptRecord.clean("k", "ip")
        for i in range(4):
            record = policy.apply_failure(record, NOW + timedelta(minutes=i * 2))
            assert not record.banned

        record = policy.apply_failure(record, NOW + timedelta(minutes=10))
        assert record.banned
        banned_at = record.banned_at

        record = fail(policy, record, 3, NOW + timedelta(days=3))
        assert record.banned
        assert record.banned_at == banned_at

    def test_cooldown_only_set_when_crossing_threshold(self, policy):
        record = fail(policy, AttemptRecord.clean("k", "ip"), 2)
        later = NOW + timedelta(seconds=61)
        record = policy.apply_failure(record, later)
        assert record.failed_attempts == 3
        # expired cooldown is dropped, no new one
        assert record.cooldown_until is None

    def test_last_attempt_time_updated(self, policy):
        record = policy.apply_failure(AttemptRecord.clean("k", "ip"), NOW)
        assert record.last_attempt_time == NOW


class TestApplySuccess:
    def test_mid_range_record_resets(self, policy):
        record = AttemptRecord(identity="k", ip_address="ip", failed_attempts=3)
        record = policy.apply_success(record)
        assert record.failed_attempts == 0
        assert record.cooldown_until is None
        assert record.banned is False

    def test_clears_cooldown(self, policy):
        record = fail(policy, AttemptRecord.clean("k", "ip"), 2)
        record = policy.apply_success(record)
        assert record.cooldown_until is None
        assert record.failed_attempts == 0


class TestDelay:
    def test_no_delay_below_cooldown_threshold(self, policy):
        assert policy.delay_ms(0) == 0
        assert policy.delay_ms(1) == 0

    def test_exponential_growth(self, policy):
        assert policy.delay_ms(2) == 1000
        assert policy.delay_ms(3) == 2000
        assert policy.delay_ms(4) == 4000

    def test_capped(self, policy):
        assert policy.delay_ms(9) == 10_000
        assert policy.delay_ms(40) == 10_000

    def test_delay_verdict_after_cooldown(self, policy):
        record = AttemptRecord(identity="k", ip_address="ip", failed_attempts=3)
        decision = policy.evaluate(record, NOW)
        assert decision.verdict == Verdict.DELAY
        assert decision.delay_ms == 2000

    def test_zero_base_disables_delay(self):
        policy = RateLimitPolicy(PolicyConfig(delay_base_ms=0))
        record = AttemptRecord(identity="k", ip_address="ip", failed_attempts=3)
        assert policy.evaluate(record, NOW).verdict == Verdict.ALLOW


class TestFormatRetryAfter:
    def test_singular_second(self):
        assert format_retry_after(1) == "1 second"

    def test_seconds(self):
        assert format_retry_after(59) == "59 seconds"

    def test_one_minute(self):
        assert format_retry_after(60) == "1 minute"

    def test_minutes_round_up(self):
        assert format_retry_after(61) == "2 minutes"


class TestConfig:
    def test_ban_threshold_must_exceed_cooldown(self):
        with pytest.raises(ValueError):
            PolicyConfig(cooldown_threshold=3, ban_threshold=3)

    def test_cooldown_threshold_positive(self):
        with pytest.raises(ValueError):
            PolicyConfig(cooldown_threshold=0)

    def test_settings_reject_inverted_thresholds(self):
        with pytest.raises(ValueError):
            Settings(secret_key="x", login_cooldown_threshold=4, login_ban_threshold=3)

    def test_settings_reject_inverted_delays(self):
        with pytest.raises(ValueError):
            Settings(secret_key="x", login_delay_base_ms=500, login_delay_max_ms=100)

    def test_from_settings(self):
        settings = Settings(
            secret_key="x",
            login_cooldown_threshold=3,
            login_ban_threshold=10,
            login_cooldown_seconds=30,
        )
        config = PolicyConfig.from_settings(settings)
        assert config.cooldown_threshold == 3
        assert config.ban_threshold == 10
        assert config.cooldown_seconds == 30

    def test_custom_thresholds_applied(self):
        policy = RateLimitPolicy(PolicyConfig(cooldown_threshold=3, ban_threshold=10, cooldown_seconds=30))
        record = fail(policy, AttemptRecord.clean("k", "ip"), 2)
        assert record.cooldown_until is None
        record = policy.apply_failure(record, NOW)
        assert record.cooldown_until == NOW + timedelta(seconds=30)
        assert not replace(record, failed_attempts=9).banned
        assert policy.evaluate(replace(record, failed_attempts=10), NOW).verdict == Verdict.BAN
