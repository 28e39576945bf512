"""
Login gate: runs one authentication attempt through the rate-limit policy.

Store outages never lock users out: a failed read is treated as a clean
record and a failed write is logged and skipped.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from storegate.services.audit import AttemptLog, AttemptLogEntry
from storegate.services.ledger import AttemptLedger, LedgerConflictError, LedgerUnavailableError
from storegate.services.policy import AttemptRecord, Decision, RateLimitPolicy, Verdict
from storegate.utils.identity import UNKNOWN_IDENTITY, storage_key
from storegate.utils.time import utcnow
from storegate.utils.user_agent import parse_user_agent

logger = logging.getLogger(__name__)

CredentialCheck = Callable[[], Awaitable[Any]]
Clock = Callable[[], datetime]
Sleep = Callable[[float], Awaitable[Any]]


class AttemptStatus(str, Enum):
    SUCCESS = "success"
    REJECTED = "rejected"  # banned or cooling down, check not run
    FAILED = "failed"  # check ran and said no


@dataclass(frozen=True)
class AttemptOutcome:
    status: AttemptStatus
    reason: str = ""
    # REJECTED: why. FAILED: BAN / COOLDOWN if this failure tripped one.
    verdict: Optional[Verdict] = None
    retry_after: int = 0
    principal: Any = None
    record: Optional[AttemptRecord] = None

    @property
    def ok(self) -> bool:
        return self.status == AttemptStatus.SUCCESS


class LoginGate:
    """Guards a credential check with the attempt ledger."""

    def __init__(
        self,
        ledger: AttemptLedger,
        policy: RateLimitPolicy,
        attempt_log: Optional[AttemptLog] = None,
        clock: Clock = utcnow,
        sleep: Sleep = asyncio.sleep,
    ):
        self.ledger = ledger
        self.policy = policy
        self.attempt_log = attempt_log
        self.clock = clock
        self.sleep = sleep

    async def load(self, identity: str) -> Optional[AttemptRecord]:
        try:
            return await self.ledger.get(identity)
        except LedgerUnavailableError as e:
            logger.warning("Attempt ledger read failed for %s, allowing: %s", identity, e)
            return None

    async def status(self, identity: str) -> Decision:
        """Current policy decision for an identity, without side effects."""
        identity = identity or UNKNOWN_IDENTITY
        return self.policy.evaluate(await self.load(identity), self.clock())

    async def attempt(
        self,
        identity: str,
        check: CredentialCheck,
        *,
        endpoint: str,
        credential_id: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AttemptOutcome:
        """
        Run ``check`` unless the identity is banned or cooling down.

        ``check`` returns a truthy principal on success and a falsy value on
        bad credentials. Anything it raises propagates to the caller.
        """
        identity = identity or UNKNOWN_IDENTITY

        decision = self.policy.evaluate(await self.load(identity), self.clock())
        if not decision.allowed:
            logger.warning("Login attempt from %s on %s rejected: %s", identity, endpoint, decision.verdict.value)
            return AttemptOutcome(
                AttemptStatus.REJECTED,
                reason=decision.reason,
                verdict=decision.verdict,
                retry_after=decision.retry_after,
            )

        if decision.delay_ms > 0:
            await self.sleep(decision.delay_ms / 1000)

        principal = await check()
        now = self.clock()

        await self._log_attempt(identity, endpoint, bool(principal), now, credential_id, user_agent)

        if principal:
            record = await self._write(identity, self.policy.apply_success)
            logger.info("Login attempt from %s on %s succeeded", identity, endpoint)
            return AttemptOutcome(AttemptStatus.SUCCESS, principal=principal, record=record)

        record = await self._write(identity, lambda r: self.policy.apply_failure(r, now))
        if record is None:
            return AttemptOutcome(AttemptStatus.FAILED, reason="Invalid credentials")

        after = self.policy.evaluate(record, now)
        if after.verdict == Verdict.BAN:
            logger.warning("%s banned after %d failed attempts", identity, record.failed_attempts)
        elif after.verdict == Verdict.COOLDOWN:
            logger.warning("%s cooling down until %s", identity, after.cooldown_until.isoformat())

        return AttemptOutcome(
            AttemptStatus.FAILED,
            reason=after.reason or "Invalid credentials",
            verdict=after.verdict if not after.allowed else None,
            retry_after=after.retry_after,
            record=record,
        )

    async def _write(self, identity: str, mutate) -> Optional[AttemptRecord]:
        try:
            return await self.ledger.update(identity, mutate)
        except (LedgerUnavailableError, LedgerConflictError) as e:
            logger.warning("Attempt ledger write failed for %s, not counted: %s", identity, e)
            return None

    async def _log_attempt(
        self,
        identity: str,
        endpoint: str,
        success: bool,
        now: datetime,
        credential_id: Optional[str],
        user_agent: Optional[str],
    ) -> None:
        if self.attempt_log is None:
            return
        entry = AttemptLogEntry(
            identity=storage_key(identity),
            ip_address=identity,
            endpoint=endpoint,
            success=success,
            timestamp=now,
            credential_id=credential_id,
            user_agent=user_agent,
            device=parse_user_agent(user_agent),
        )
        try:
            await self.attempt_log.append(entry)
        except LedgerUnavailableError as e:
            logger.warning("Login attempt log write failed for %s: %s", identity, e)
