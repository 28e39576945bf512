"""
Security schemas
"""
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field


class AttemptRecordResponse(BaseModel):
    identity: str
    ip_address: str
    failed_attempts: int
    last_attempt_time: Optional[datetime] = None
    cooldown_until: Optional[datetime] = None
    banned: bool
    banned_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AttemptRecordListResponse(BaseModel):
    items: list[AttemptRecordResponse]
    total: int
    page: int
    per_page: int


class BanIPRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


class UnbanIPRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)


class LoginAttemptResponse(BaseModel):
    id: int
    ip_address: str
    credential_id: Optional[str] = None
    endpoint: str
    user_agent: Optional[str] = None
    browser: str
    os: str
    device: str
    success: bool
    attempt_time: datetime

    model_config = {"from_attributes": True}


class SecurityEventResponse(BaseModel):
    id: int
    event_type: str
    ip_address: Optional[str] = None
    username: Optional[str] = None
    details: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SecurityStatsResponse(BaseModel):
    tracked_ips: int
    banned_ips: int
    attempts_24h: int
    failed_attempts_24h: int
    events_today: int


class ThreatResponse(BaseModel):
    type: str
    subject: str
    failed_attempts: int
    total_attempts: int
    severity: str


class ThreatAnalysisResponse(BaseModel):
    success: bool = True
    message: str
    threat_count: int
    threats: list[ThreatResponse]
    timestamp: datetime


class CleanupResponse(BaseModel):
    success: bool = True
    message: str
    deleted: dict[str, int]


class SecurityActivityRequest(BaseModel):
    action: str = Field(..., min_length=1, max_length=50)
    details: dict[str, Any] = Field(default_factory=dict)
