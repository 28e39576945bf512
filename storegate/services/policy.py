"""
Rate-limit policy for authentication attempts.

Pure decision logic over an AttemptRecord: no storage, no clock of its own.
"""
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from storegate.config import Settings


@dataclass
class AttemptRecord:
    """Failure-count / cooldown / ban state for one identity."""
    identity: str
    ip_address: str
    failed_attempts: int = 0
    last_attempt_time: Optional[datetime] = None
    cooldown_until: Optional[datetime] = None
    banned: bool = False
    banned_at: Optional[datetime] = None
    # 0 = not persisted yet
    version: int = 0

    @classmethod
    def clean(cls, identity: str, ip_address: str) -> "AttemptRecord":
        return cls(identity=identity, ip_address=ip_address)


class Verdict(str, Enum):
    ALLOW = "allow"
    DELAY = "delay"
    COOLDOWN = "cooldown"
    BAN = "ban"


@dataclass(frozen=True)
class Decision:
    verdict: Verdict
    reason: str = ""
    delay_ms: int = 0
    cooldown_until: Optional[datetime] = None
    retry_after: int = 0  # seconds, only for COOLDOWN

    @property
    def allowed(self) -> bool:
        return self.verdict in (Verdict.ALLOW, Verdict.DELAY)


@dataclass(frozen=True)
class PolicyConfig:
    cooldown_threshold: int = 2
    ban_threshold: int = 5
    cooldown_seconds: int = 60
    delay_base_ms: int = 250
    delay_max_ms: int = 10_000

    def __post_init__(self):
        if self.cooldown_threshold < 1:
            raise ValueError("cooldown_threshold must be at least 1")
        if self.ban_threshold <= self.cooldown_threshold:
            raise ValueError("ban_threshold must be greater than cooldown_threshold")
        if self.cooldown_seconds < 1:
            raise ValueError("cooldown_seconds must be positive")

    @classmethod
    def from_settings(cls, settings: Settings) -> "PolicyConfig":
        return cls(
            cooldown_threshold=settings.login_cooldown_threshold,
            ban_threshold=settings.login_ban_threshold,
            cooldown_seconds=settings.login_cooldown_seconds,
            delay_base_ms=settings.login_delay_base_ms,
            delay_max_ms=settings.login_delay_max_ms,
        )


def format_retry_after(seconds: int) -> str:
    """Human readable remaining time: seconds under a minute, whole minutes above."""
    if seconds < 60:
        unit = "second" if seconds == 1 else "seconds"
        return f"{seconds} {unit}"
    minutes = math.ceil(seconds / 60)
    unit = "minute" if minutes == 1 else "minutes"
    return f"{minutes} {unit}"


class RateLimitPolicy:
    """Decides allow / delay / cooldown / ban, and how a failure changes a record."""

    def __init__(self, config: Optional[PolicyConfig] = None):
        self.config = config or PolicyConfig()

    def is_banned(self, record: AttemptRecord) -> bool:
        return record.banned or record.failed_attempts >= self.config.ban_threshold

    def active_cooldown(self, record: AttemptRecord, now: datetime) -> Optional[datetime]:
        if record.cooldown_until is not None and now < record.cooldown_until:
            return record.cooldown_until
        return None

    def delay_ms(self, failed_attempts: int) -> int:
        if failed_attempts < self.config.cooldown_threshold:
            return 0
        return min(self.config.delay_base_ms * 2 ** failed_attempts, self.config.delay_max_ms)

    def evaluate(self, record: Optional[AttemptRecord], now: datetime) -> Decision:
        """Ban, then cooldown, then delay."""
        if record is None:
            return Decision(Verdict.ALLOW)

        if self.is_banned(record):
            return Decision(Verdict.BAN, reason=f"IP address {record.ip_address} blocked")

        cooldown_until = self.active_cooldown(record, now)
        if cooldown_until is not None:
            retry_after = max(math.ceil((cooldown_until - now).total_seconds()), 1)
            return Decision(
                Verdict.COOLDOWN,
                reason=(
                    "Too many failed login attempts. "
                    f"Retry after {format_retry_after(retry_after)}."
                ),
                cooldown_until=cooldown_until,
                retry_after=retry_after,
            )

        delay = self.delay_ms(record.failed_attempts)
        if delay > 0:
            return Decision(Verdict.DELAY, delay_ms=delay)
        return Decision(Verdict.ALLOW)

    def refresh(self, record: AttemptRecord, now: datetime) -> AttemptRecord:
        """Drop a cooldown that has run out."""
        if record.cooldown_until is not None and now >= record.cooldown_until:
            return replace(record, cooldown_until=None)
        return record

    def apply_failure(self, record: AttemptRecord, now: datetime) -> AttemptRecord:
        """Record after one more failed attempt."""
        updated = self.refresh(record, now)
        previous = updated.failed_attempts
        failed = previous + 1
        updated = replace(updated, failed_attempts=failed, last_attempt_time=now)

        if previous < self.config.cooldown_threshold <= failed:
            updated = replace(
                updated,
                cooldown_until=now + timedelta(seconds=self.config.cooldown_seconds)
            )

        if failed >= self.config.ban_threshold and not updated.banned:
            updated = replace(updated, banned=True, banned_at=now)

        return updated

    def apply_success(self, record: AttemptRecord) -> AttemptRecord:
        return replace(record, failed_attempts=0, cooldown_until=None)
