"""
Security audit log
"""
from sqlalchemy import Column, Integer, String, DateTime, Text
from storegate.database import Base
from storegate.utils.time import utcnow


class SecurityEvent(Base):
    """Security audit log"""
    __tablename__ = "security_events"

    id = Column(Integer, primary_key=True, index=True)
    event_type = Column(String(50), index=True)  # ip_banned, ip_unbanned, cleanup, client activity, etc.
    ip_address = Column(String(45), nullable=True)
    username = Column(String(255), nullable=True)
    details = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
