"""
Login attempt models: the compacted per-identity ledger row and the append-only audit log
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from storegate.database import Base
from storegate.utils.time import utcnow


class AttemptRecordRow(Base):
    """Failure count / cooldown / ban state for one client identity"""
    __tablename__ = "attempt_records"

    identity: Mapped[str] = mapped_column(String(64), primary_key=True)  # storage key, e.g. 10_0_0_1
    ip_address: Mapped[str] = mapped_column(String(45))
    failed_attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_attempt_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    cooldown_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    banned: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    banned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=1)


class LoginAttemptEntry(Base):
    """One row per authentication attempt, never updated"""
    __tablename__ = "login_attempts"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    identity: Mapped[str] = mapped_column(String(64), index=True)
    ip_address: Mapped[str] = mapped_column(String(45), index=True)
    credential_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)  # email, never a password
    endpoint: Mapped[str] = mapped_column(String(100))
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    browser: Mapped[str] = mapped_column(String(50), default="Unknown")
    os: Mapped[str] = mapped_column(String(50), default="Unknown")
    device: Mapped[str] = mapped_column(String(50), default="Unknown")
    success: Mapped[bool] = mapped_column(Boolean, default=False)
    attempt_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
