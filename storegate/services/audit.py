"""
Append-only login attempt log
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storegate.models.attempt import LoginAttemptEntry
from storegate.services.ledger import LedgerUnavailableError
from storegate.utils.user_agent import DeviceInfo, parse_user_agent


@dataclass(frozen=True)
class AttemptLogEntry:
    identity: str
    ip_address: str
    endpoint: str
    success: bool
    timestamp: datetime
    credential_id: Optional[str] = None
    user_agent: Optional[str] = None
    device: DeviceInfo = field(default_factory=lambda: parse_user_agent(None))


class AttemptLog:
    async def append(self, entry: AttemptLogEntry) -> None:
        raise NotImplementedError


class MemoryAttemptLog(AttemptLog):
    def __init__(self):
        self.entries: list[AttemptLogEntry] = []

    async def append(self, entry: AttemptLogEntry) -> None:
        self.entries.append(entry)


class SqlAttemptLog(AttemptLog):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(self, entry: AttemptLogEntry) -> None:
        self.db.add(LoginAttemptEntry(
            identity=entry.identity,
            ip_address=entry.ip_address,
            credential_id=entry.credential_id,
            endpoint=entry.endpoint,
            user_agent=entry.user_agent,
            browser=entry.device["browser"],
            os=entry.device["os"],
            device=entry.device["device"],
            success=entry.success,
            attempt_time=entry.timestamp,
        ))
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise LedgerUnavailableError(str(e)) from e
