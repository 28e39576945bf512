"""Tests for the login gate: rejection before the check, counting, reset, and store outages."""

import pytest

from conftest import CountingCheck
from storegate.services.gate import AttemptStatus, LoginGate
from storegate.services.ledger import AttemptLedger, LedgerUnavailableError, MemoryLedgerStore
from storegate.services.policy import RateLimitPolicy, Verdict
from storegate.utils.identity import UNKNOWN_IDENTITY


class UnavailableStore(MemoryLedgerStore):
    """Every read and write fails."""

    async def get(self, key):
        raise LedgerUnavailableError("connection refused")

    async def put(self, record):
        raise LedgerUnavailableError("connection refused")


class ReadOnlyStore(MemoryLedgerStore):
    """Reads work, writes fail."""

    async def put(self, record):
        raise LedgerUnavailableError("read-only replica")


async def fail_once(gate, identity="10.0.0.1"):
    return await gate.attempt(identity, CountingCheck(False), endpoint="/login")


class TestScenarios:
    async def test_first_failure_allows_without_delay(self, gate):
        outcome = await fail_once(gate)
        assert outcome.status == AttemptStatus.FAILED
        assert outcome.verdict is None
        assert outcome.reason == "Invalid credentials"

        decision = await gate.status("10.0.0.1")
        assert decision.allowed
        assert decision.delay_ms == 0

    async def test_second_failure_starts_cooldown(self, gate, clock):
        await fail_once(gate)
        outcome = await fail_once(gate)
        assert outcome.status == AttemptStatus.FAILED
        assert outcome.verdict == Verdict.COOLDOWN
        assert outcome.retry_after == 60

        clock.advance(1)
        check = CountingCheck(True)
        rejected = await gate.attempt("10.0.0.1", check, endpoint="/login")
        assert rejected.status == AttemptStatus.REJECTED
        assert rejected.verdict == Verdict.COOLDOWN
        assert "59 seconds" in rejected.reason
        assert check.calls == 0

    async def test_ban_after_cooldown_expires(self, gate, clock, sleep):
        await fail_once(gate)
        await fail_once(gate)
        clock.advance(60)

        await fail_once(gate)
        await fail_once(gate)
        outcome = await fail_once(gate)
        assert outcome.verdict == Verdict.BAN
        assert outcome.record.banned
        assert sleep.calls == [1.0, 2.0, 4.0]

        check = CountingCheck(True)
        rejected = await gate.attempt("10.0.0.1", check, endpoint="/login")
        assert rejected.status == AttemptStatus.REJECTED
        assert rejected.verdict == Verdict.BAN
        assert rejected.reason == "IP address 10.0.0.1 blocked"
        assert check.calls == 0

    async def test_fresh_identity_succeeds_without_record(self, gate, ledger):
        check = CountingCheck({"uid": "abc"})
        outcome = await gate.attempt("10.0.0.2", check, endpoint="/login")
        assert outcome.ok
        assert outcome.principal == {"uid": "abc"}
        assert check.calls == 1
        assert outcome.record.failed_attempts == 0

    async def test_success_resets_mid_range_record(self, gate, ledger, clock):
        await fail_once(gate)
        await fail_once(gate)
        clock.advance(61)
        await fail_once(gate)
        assert (await ledger.get("10.0.0.1")).failed_attempts == 3

        outcome = await gate.attempt("10.0.0.1", CountingCheck(True), endpoint="/login")
        assert outcome.ok
        record = await ledger.get("10.0.0.1")
        assert record.failed_attempts == 0
        assert record.cooldown_until is None
        assert record.banned is False


class TestLockout:
    async def test_ban_survives_further_attempts(self, gate, ledger, clock):
        await ledger.ban("10.0.0.1", clock())
        for _ in range(5):
            check = CountingCheck(True)
            outcome = await gate.attempt("10.0.0.1", check, endpoint="/login")
            assert outcome.status == AttemptStatus.REJECTED
            assert check.calls == 0
            clock.advance(3600)

        record = await ledger.get("10.0.0.1")
        assert record.banned
        assert record.failed_attempts == 0

    async def test_manual_clear_lifts_ban(self, gate, ledger, clock):
        await ledger.ban("10.0.0.1", clock())
        await ledger.clear("10.0.0.1")
        outcome = await gate.attempt("10.0.0.1", CountingCheck(True), endpoint="/login")
        assert outcome.ok

    async def test_rejected_attempts_are_not_logged(self, gate, attempt_log, clock):
        await fail_once(gate)
        await fail_once(gate)
        await gate.attempt("10.0.0.1", CountingCheck(True), endpoint="/login")
        assert len(attempt_log.entries) == 2

    async def test_identities_are_independent(self, gate):
        await fail_once(gate, "10.0.0.1")
        await fail_once(gate, "10.0.0.1")
        outcome = await gate.attempt("10.0.0.2", CountingCheck(True), endpoint="/login")
        assert outcome.ok


class TestAttemptLog:
    async def test_entry_contents(self, gate, attempt_log, clock):
        ua = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36"
        await gate.attempt(
            "10.0.0.1", CountingCheck(False),
            endpoint="/api/auth/admin/login", credential_id="a@example.com", user_agent=ua,
        )
        entry = attempt_log.entries[0]
        assert entry.identity == "10_0_0_1"
        assert entry.ip_address == "10.0.0.1"
        assert entry.success is False
        assert entry.credential_id == "a@example.com"
        assert entry.timestamp == clock()
        assert entry.device == {"browser": "Chrome", "os": "Windows", "device": "Desktop"}


class TestStoreOutage:
    async def test_read_failure_fails_open(self, clock, sleep):
        gate = LoginGate(AttemptLedger(UnavailableStore()), RateLimitPolicy(), clock=clock, sleep=sleep)
        check = CountingCheck(True)
        outcome = await gate.attempt("10.0.0.1", check, endpoint="/login")
        assert outcome.ok
        assert check.calls == 1

    async def test_write_failure_is_silent(self, clock, sleep):
        gate = LoginGate(AttemptLedger(ReadOnlyStore()), RateLimitPolicy(), clock=clock, sleep=sleep)
        outcome = await gate.attempt("10.0.0.1", CountingCheck(False), endpoint="/login")
        assert outcome.status == AttemptStatus.FAILED
        assert outcome.reason == "Invalid credentials"
        assert outcome.record is None

        outcome = await gate.attempt("10.0.0.1", CountingCheck(True), endpoint="/login")
        assert outcome.ok

    async def test_status_fails_open(self, clock, sleep):
        gate = LoginGate(AttemptLedger(UnavailableStore()), RateLimitPolicy(), clock=clock, sleep=sleep)
        assert (await gate.status("10.0.0.1")).verdict == Verdict.ALLOW


class TestEdgeCases:
    async def test_missing_identity_uses_sentinel(self, gate, ledger):
        await gate.attempt("", CountingCheck(False), endpoint="/login")
        record = await ledger.get(UNKNOWN_IDENTITY)
        assert record is not None
        assert record.failed_attempts == 1

    async def test_check_errors_propagate(self, gate, ledger):
        async def broken():
            raise RuntimeError("identity provider down")

        with pytest.raises(RuntimeError):
            await gate.attempt("10.0.0.1", broken, endpoint="/login")
        assert await ledger.get("10.0.0.1") is None
