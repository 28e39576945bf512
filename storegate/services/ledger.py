"""
Attempt ledger: one AttemptRecord per client identity.

Stores implement a get / put contract with an optimistic version check so that
concurrent failing attempts from one identity cannot overwrite each other's
increments. ``AttemptLedger`` owns identity normalization and the
read-modify-write retry loop.
"""
import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storegate.models.attempt import AttemptRecordRow
from storegate.services.policy import AttemptRecord
from storegate.utils.identity import storage_key
from storegate.utils.time import as_utc

logger = logging.getLogger(__name__)


class LedgerUnavailableError(Exception):
    """The backing store could not be read or written."""


class LedgerConflictError(Exception):
    """Another writer updated the record since it was read."""


class LedgerStore:
    """Storage contract for attempt records, keyed by storage key."""

    async def get(self, key: str) -> Optional[AttemptRecord]:
        raise NotImplementedError

    async def put(self, record: AttemptRecord) -> AttemptRecord:
        """
        Write ``record`` if the stored version still equals ``record.version``
        (0 = must not exist yet). Returns the record with its new version.
        Raises LedgerConflictError when the check fails.
        """
        raise NotImplementedError

    async def list_records(self, banned_only: bool = False, limit: int = 100, offset: int = 0) -> list[AttemptRecord]:
        raise NotImplementedError

    async def count(self, banned_only: bool = False) -> int:
        raise NotImplementedError


class MemoryLedgerStore(LedgerStore):
    """
    Process-local store.

    State lives only as long as the process: a restart or a second instance
    starts from a clean slate, so counting is not durable across deployments.
    """

    def __init__(self):
        self._records: dict[str, AttemptRecord] = {}

    async def get(self, key: str) -> Optional[AttemptRecord]:
        record = self._records.get(key)
        return replace(record) if record else None

    async def put(self, record: AttemptRecord) -> AttemptRecord:
        current = self._records.get(record.identity)
        current_version = current.version if current else 0
        if current_version != record.version:
            raise LedgerConflictError(record.identity)

        stored = replace(record, version=record.version + 1)
        self._records[record.identity] = stored
        return replace(stored)

    async def list_records(self, banned_only: bool = False, limit: int = 100, offset: int = 0) -> list[AttemptRecord]:
        records = self._sorted()
        if banned_only:
            records = [r for r in records if r.banned]
        return [replace(r) for r in records[offset:offset + limit]]

    async def count(self, banned_only: bool = False) -> int:
        if banned_only:
            return sum(1 for r in self._records.values() if r.banned)
        return len(self._records)

    def _sorted(self) -> list[AttemptRecord]:
        dated = [r for r in self._records.values() if r.last_attempt_time is not None]
        undated = [r for r in self._records.values() if r.last_attempt_time is None]
        dated.sort(key=lambda r: r.last_attempt_time, reverse=True)
        return dated + undated


def _to_record(row: AttemptRecordRow) -> AttemptRecord:
    return AttemptRecord(
        identity=row.identity,
        ip_address=row.ip_address,
        failed_attempts=row.failed_attempts,
        last_attempt_time=as_utc(row.last_attempt_time),
        cooldown_until=as_utc(row.cooldown_until),
        banned=row.banned,
        banned_at=as_utc(row.banned_at),
        version=row.version,
    )


class SqlLedgerStore(LedgerStore):
    """attempt_records table, one row per storage key, versioned."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, key: str) -> Optional[AttemptRecord]:
        try:
            result = await self.db.execute(
                select(AttemptRecordRow)
                .where(AttemptRecordRow.identity == key)
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            raise LedgerUnavailableError(str(e)) from e

        row = result.scalar_one_or_none()
        return _to_record(row) if row else None

    async def put(self, record: AttemptRecord) -> AttemptRecord:
        values = dict(
            ip_address=record.ip_address,
            failed_attempts=record.failed_attempts,
            last_attempt_time=record.last_attempt_time,
            cooldown_until=record.cooldown_until,
            banned=record.banned,
            banned_at=record.banned_at,
            version=record.version + 1,
        )

        try:
            if record.version == 0:
                await self.db.execute(
                    insert(AttemptRecordRow).values(identity=record.identity, **values)
                )
            else:
                result = await self.db.execute(
                    update(AttemptRecordRow)
                    .where(
                        AttemptRecordRow.identity == record.identity,
                        AttemptRecordRow.version == record.version
                    )
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    await self.db.rollback()
                    raise LedgerConflictError(record.identity)
            await self.db.commit()
        except IntegrityError as e:
            # Lost the race to create the row
            await self.db.rollback()
            raise LedgerConflictError(record.identity) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise LedgerUnavailableError(str(e)) from e

        return replace(record, version=record.version + 1)

    async def list_records(self, banned_only: bool = False, limit: int = 100, offset: int = 0) -> list[AttemptRecord]:
        query = select(AttemptRecordRow).order_by(AttemptRecordRow.last_attempt_time.desc())
        if banned_only:
            query = query.where(AttemptRecordRow.banned == True)
        query = query.limit(limit).offset(offset).execution_options(populate_existing=True)

        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise LedgerUnavailableError(str(e)) from e
        return [_to_record(row) for row in result.scalars().all()]

    async def count(self, banned_only: bool = False) -> int:
        query = select(func.count(AttemptRecordRow.identity))
        if banned_only:
            query = query.where(AttemptRecordRow.banned == True)
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise LedgerUnavailableError(str(e)) from e
        return result.scalar() or 0


Mutation = Callable[[AttemptRecord], AttemptRecord]


class AttemptLedger:
    """Identity-normalizing front for a LedgerStore."""

    MAX_WRITE_RETRIES = 5

    def __init__(self, store: LedgerStore):
        self.store = store

    async def get(self, identity: str) -> Optional[AttemptRecord]:
        return await self.store.get(storage_key(identity))

    async def update(self, identity: str, mutate: Mutation) -> AttemptRecord:
        """
        Read-modify-write with a version check, retried on conflict.
        A missing record starts from a clean one.
        """
        key = storage_key(identity)
        for attempt in range(1, self.MAX_WRITE_RETRIES + 1):
            current = await self.store.get(key) or AttemptRecord.clean(key, identity)
            try:
                return await self.store.put(mutate(current))
            except LedgerConflictError:
                logger.info("Attempt record %s changed concurrently, retry %d", key, attempt)
        raise LedgerConflictError(key)

    async def clear(self, identity: str) -> AttemptRecord:
        """Manual unban: the only way a ban is lifted."""
        return await self.update(
            identity,
            lambda r: replace(
                r, failed_attempts=0, cooldown_until=None, banned=False, banned_at=None
            ),
        )

    async def ban(self, identity: str, now: datetime) -> AttemptRecord:
        return await self.update(
            identity,
            lambda r: replace(
                r,
                banned=True,
                banned_at=r.banned_at or now,
                last_attempt_time=r.last_attempt_time or now,
            ),
        )

    async def list_records(self, banned_only: bool = False, limit: int = 100, offset: int = 0) -> list[AttemptRecord]:
        return await self.store.list_records(banned_only=banned_only, limit=limit, offset=offset)

    async def count(self, banned_only: bool = False) -> int:
        return await self.store.count(banned_only=banned_only)
