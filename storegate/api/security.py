"""
Security API endpoints - attempt ledger and audit log management
"""
from typing import Optional
from fastapi import APIRouter, HTTPException, Query

from storegate.api.deps import AppSettings, CurrentAdmin, CurrentClaims, Security
from storegate.schemas.auth import MessageResponse
from storegate.schemas.security import (
    AttemptRecordListResponse,
    AttemptRecordResponse,
    BanIPRequest,
    CleanupResponse,
    LoginAttemptResponse,
    SecurityActivityRequest,
    SecurityEventResponse,
    SecurityStatsResponse,
    ThreatAnalysisResponse,
    ThreatResponse,
    UnbanIPRequest,
)
from storegate.utils.identity import UNKNOWN_IDENTITY, client_identity
from storegate.utils.time import utcnow

router = APIRouter(prefix="/security")

activity_router = APIRouter()


def _ip_or_400(ip_address: str) -> str:
    ip = client_identity(ip_address)
    if ip == UNKNOWN_IDENTITY:
        raise HTTPException(status_code=400, detail="Invalid IP address")
    return ip


def _admin_name(admin: dict) -> str:
    return admin.get("email") or admin.get("sub") or "admin"


@router.get("/stats", response_model=SecurityStatsResponse)
async def get_security_stats(security: Security, current_admin: CurrentAdmin):
    """Get security statistics for dashboard"""
    return SecurityStatsResponse(**await security.get_stats())


@router.get("/records", response_model=AttemptRecordListResponse)
async def get_attempt_records(
    security: Security,
    current_admin: CurrentAdmin,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    banned_only: bool = Query(False),
):
    """Get list of tracked IPs"""
    offset = (page - 1) * per_page
    records = await security.ledger.list_records(banned_only=banned_only, limit=per_page, offset=offset)
    total = await security.ledger.count(banned_only=banned_only)

    return AttemptRecordListResponse(
        items=[AttemptRecordResponse.model_validate(r) for r in records],
        total=total,
        page=page,
        per_page=per_page
    )


@router.get("/records/{ip_address}", response_model=AttemptRecordResponse)
async def get_attempt_record(ip_address: str, security: Security, current_admin: CurrentAdmin):
    """Get details for a specific IP"""
    record = await security.ledger.get(_ip_or_400(ip_address))
    if record is None:
        raise HTTPException(status_code=404, detail="IP not found")
    return AttemptRecordResponse.model_validate(record)


@router.post("/records/{ip_address}/ban", response_model=AttemptRecordResponse)
async def ban_ip(
    ip_address: str,
    data: BanIPRequest,
    security: Security,
    current_admin: CurrentAdmin
):
    """Manually ban an IP address"""
    record = await security.ban_ip(
        _ip_or_400(ip_address),
        admin_username=_admin_name(current_admin),
        reason=data.reason
    )
    return AttemptRecordResponse.model_validate(record)


@router.post("/records/{ip_address}/unban", response_model=AttemptRecordResponse)
async def unban_ip(
    ip_address: str,
    data: UnbanIPRequest,
    security: Security,
    current_admin: CurrentAdmin
):
    """Clear an IP's failures, cooldown and ban"""
    record = await security.unban_ip(
        _ip_or_400(ip_address),
        admin_username=_admin_name(current_admin),
        notes=data.notes
    )
    if record is None:
        raise HTTPException(status_code=404, detail="IP not found")
    return AttemptRecordResponse.model_validate(record)


@router.get("/attempts", response_model=list[LoginAttemptResponse])
async def get_login_attempts(
    security: Security,
    current_admin: CurrentAdmin,
    ip_address: Optional[str] = None,
    success: Optional[bool] = None,
    limit: int = Query(100, ge=1, le=500),
):
    """Get recent login attempts"""
    if ip_address is not None and ip_address != UNKNOWN_IDENTITY:
        ip_address = _ip_or_400(ip_address)
    attempts = await security.get_recent_attempts(
        ip_address=ip_address,
        success=success,
        limit=limit
    )
    return [LoginAttemptResponse.model_validate(a) for a in attempts]


@router.get("/events", response_model=list[SecurityEventResponse])
async def get_security_events(
    security: Security,
    current_admin: CurrentAdmin,
    event_type: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
):
    """Get security events log"""
    events = await security.get_security_events(event_type=event_type, limit=limit)
    return [SecurityEventResponse.model_validate(e) for e in events]


@router.get("/analyze", response_model=ThreatAnalysisResponse)
async def analyze_threats(security: Security, current_admin: CurrentAdmin):
    """Look for suspicious IPs and accounts in the last day of attempts"""
    threats = await security.analyze_threats()
    return ThreatAnalysisResponse(
        message=f"{len(threats)} potential threats detected" if threats else "No threats detected",
        threat_count=len(threats),
        threats=[ThreatResponse(**t) for t in threats],
        timestamp=utcnow(),
    )


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_old_records(
    security: Security,
    settings: AppSettings,
    current_admin: CurrentAdmin,
    days: Optional[int] = Query(None, ge=7, le=365),
):
    """Clean up old security records"""
    retention_days = days or settings.log_retention_days
    deleted = await security.cleanup_old_records(
        retention_days=retention_days,
        ban_release_days=settings.ban_release_days
    )
    return CleanupResponse(
        message=f"Cleaned up records older than {retention_days} days",
        deleted=deleted
    )


@activity_router.post("/activity", response_model=MessageResponse)
async def log_security_activity(
    data: SecurityActivityRequest,
    security: Security,
    claims: CurrentClaims
):
    """Record a sensitive action reported by the client (settings change, payment, ...)"""
    await security.log_event(
        data.action,
        username=claims.get("email") or claims.get("sub") or "anonymous",
        details=str(data.details) if data.details else None
    )
    return MessageResponse(success=True, message="Activity logged")
