"""
Security service: admin operations on the attempt ledger and the audit logs
"""
import logging
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storegate.models.attempt import AttemptRecordRow, LoginAttemptEntry
from storegate.models.security import SecurityEvent
from storegate.services.ledger import AttemptLedger, SqlLedgerStore
from storegate.services.policy import AttemptRecord
from storegate.utils.time import utcnow

logger = logging.getLogger(__name__)


class SecurityService:
    """Manual bans, audit queries, threat analysis and the maintenance sweep"""

    # Threat analysis
    ANALYSIS_WINDOW_HOURS = 24
    SUSPICIOUS_FAILURES = 3
    MEDIUM_SEVERITY_FAILURES = 5
    HIGH_SEVERITY_FAILURES = 10

    def __init__(self, db: AsyncSession, ledger: Optional[AttemptLedger] = None):
        self.db = db
        self.ledger = ledger or AttemptLedger(SqlLedgerStore(db))

    async def ban_ip(self, ip_address: str, admin_username: str, reason: Optional[str] = None) -> AttemptRecord:
        """Manually ban an IP (by admin)"""
        record = await self.ledger.ban(ip_address, utcnow())
        await self.log_event(
            "ip_banned_manual",
            ip_address=ip_address,
            username=admin_username,
            details=f"Manually banned: {reason or 'No reason provided'}"
        )
        logger.warning("%s banned by %s", ip_address, admin_username)
        return record

    async def unban_ip(self, ip_address: str, admin_username: str, notes: Optional[str] = None) -> Optional[AttemptRecord]:
        """Manually clear an IP's record. Returns None if there was nothing to clear."""
        if await self.ledger.get(ip_address) is None:
            return None

        record = await self.ledger.clear(ip_address)
        await self.log_event(
            "ip_unbanned",
            ip_address=ip_address,
            username=admin_username,
            details=f"Record cleared by admin: {notes or 'No reason provided'}"
        )
        logger.info("%s cleared by %s", ip_address, admin_username)
        return record

    async def get_recent_attempts(
        self,
        ip_address: Optional[str] = None,
        success: Optional[bool] = None,
        limit: int = 100
    ) -> list[LoginAttemptEntry]:
        """Get recent login attempts"""
        query = select(LoginAttemptEntry).order_by(LoginAttemptEntry.attempt_time.desc())

        if ip_address:
            query = query.where(LoginAttemptEntry.ip_address == ip_address)
        if success is not None:
            query = query.where(LoginAttemptEntry.success == success)

        query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_security_events(
        self,
        event_type: Optional[str] = None,
        limit: int = 100
    ) -> list[SecurityEvent]:
        """Get security events log"""
        query = select(SecurityEvent).order_by(SecurityEvent.created_at.desc())

        if event_type:
            query = query.where(SecurityEvent.event_type == event_type)

        query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_stats(self, now: Optional[datetime] = None) -> dict:
        now = now or utcnow()
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        yesterday = now - timedelta(hours=24)

        tracked = await self.ledger.count()
        banned = await self.ledger.count(banned_only=True)

        result = await self.db.execute(
            select(
                func.count(LoginAttemptEntry.id),
                func.coalesce(func.sum(case((LoginAttemptEntry.success == False, 1), else_=0)), 0),
            ).where(LoginAttemptEntry.attempt_time >= yesterday)
        )
        attempts_24h, failed_24h = result.one()

        result = await self.db.execute(
            select(func.count(SecurityEvent.id)).where(SecurityEvent.created_at >= today_start)
        )
        events_today = result.scalar() or 0

        return {
            "tracked_ips": tracked,
            "banned_ips": banned,
            "attempts_24h": attempts_24h or 0,
            "failed_attempts_24h": int(failed_24h or 0),
            "events_today": events_today,
        }

    async def analyze_threats(self, now: Optional[datetime] = None) -> list[dict]:
        """Flag IPs and emails with many recent failures in the attempt log"""
        now = now or utcnow()
        window_start = now - timedelta(hours=self.ANALYSIS_WINDOW_HOURS)
        failed = func.sum(case((LoginAttemptEntry.success == False, 1), else_=0))

        threats = []
        for column, threat_type in (
            (LoginAttemptEntry.ip_address, "suspicious_login_ip"),
            (LoginAttemptEntry.credential_id, "suspicious_login_email"),
        ):
            result = await self.db.execute(
                select(column, func.count(LoginAttemptEntry.id), failed)
                .where(LoginAttemptEntry.attempt_time >= window_start)
                .where(column.is_not(None))
                .group_by(column)
                .having(failed >= self.SUSPICIOUS_FAILURES)
                .order_by(failed.desc())
            )
            for subject, total, failures in result.all():
                threats.append({
                    "type": threat_type,
                    "subject": subject,
                    "failed_attempts": int(failures),
                    "total_attempts": total,
                    "severity": self._severity(int(failures)),
                })
        return threats

    def _severity(self, failures: int) -> str:
        if failures >= self.HIGH_SEVERITY_FAILURES:
            return "high"
        if failures >= self.MEDIUM_SEVERITY_FAILURES:
            return "medium"
        return "low"

    async def cleanup_old_records(
        self,
        retention_days: int = 30,
        ban_release_days: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> dict:
        """Delete old attempt and event rows, optionally lifting long-idle bans"""
        now = now or utcnow()
        cutoff = now - timedelta(days=retention_days)

        attempts = await self.db.execute(
            delete(LoginAttemptEntry).where(LoginAttemptEntry.attempt_time < cutoff)
        )
        events = await self.db.execute(
            delete(SecurityEvent).where(SecurityEvent.created_at < cutoff)
        )

        released = 0
        if ban_release_days:
            idle_cutoff = now - timedelta(days=ban_release_days)
            result = await self.db.execute(
                update(AttemptRecordRow)
                .where(
                    AttemptRecordRow.banned == True,
                    AttemptRecordRow.last_attempt_time < idle_cutoff
                )
                .values(
                    banned=False,
                    banned_at=None,
                    failed_attempts=0,
                    cooldown_until=None,
                    version=AttemptRecordRow.version + 1
                )
                .execution_options(synchronize_session=False)
            )
            released = result.rowcount or 0

        summary = {
            "login_attempts": attempts.rowcount or 0,
            "security_events": events.rowcount or 0,
            "released_bans": released,
        }
        await self._log_event(
            "security_cleanup",
            details=(
                f"Removed {summary['login_attempts']} attempts and {summary['security_events']} events "
                f"older than {retention_days} days, released {released} bans"
            )
        )
        await self.db.commit()
        logger.info("Security cleanup: %s", summary)
        return summary

    async def log_event(
        self,
        event_type: str,
        ip_address: Optional[str] = None,
        username: Optional[str] = None,
        details: Optional[str] = None
    ) -> SecurityEvent:
        """Log a security event and commit"""
        event = await self._log_event(event_type, ip_address, username, details)
        await self.db.commit()
        return event

    async def _log_event(
        self,
        event_type: str,
        ip_address: Optional[str] = None,
        username: Optional[str] = None,
        details: Optional[str] = None
    ) -> SecurityEvent:
        """Log a security event"""
        event = SecurityEvent(
            event_type=event_type,
            ip_address=ip_address,
            username=username,
            details=details,
            created_at=utcnow()
        )
        self.db.add(event)
        return event
