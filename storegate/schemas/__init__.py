from storegate.schemas.auth import (
    SiteUnlockRequest, AdminLoginRequest, AdminUserInfo, LoginResponse,
    IPStatusResponse, TokenValidationResponse, AuthStatusResponse, MessageResponse
)
from storegate.schemas.security import (
    AttemptRecordResponse, AttemptRecordListResponse, BanIPRequest, UnbanIPRequest,
    LoginAttemptResponse, SecurityEventResponse, SecurityStatsResponse,
    ThreatResponse, ThreatAnalysisResponse, CleanupResponse, SecurityActivityRequest
)
from storegate.schemas.site import SitePasswordUpdateRequest, SitePasswordStatusResponse

__all__ = [
    # Auth
    "SiteUnlockRequest", "AdminLoginRequest", "AdminUserInfo", "LoginResponse",
    "IPStatusResponse", "TokenValidationResponse", "AuthStatusResponse", "MessageResponse",
    # Security
    "AttemptRecordResponse", "AttemptRecordListResponse", "BanIPRequest", "UnbanIPRequest",
    "LoginAttemptResponse", "SecurityEventResponse", "SecurityStatsResponse",
    "ThreatResponse", "ThreatAnalysisResponse", "CleanupResponse", "SecurityActivityRequest",
    # Site settings
    "SitePasswordUpdateRequest", "SitePasswordStatusResponse",
]
