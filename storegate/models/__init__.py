from storegate.models.admin import AdminUser
from storegate.models.attempt import AttemptRecordRow, LoginAttemptEntry
from storegate.models.security import SecurityEvent
from storegate.models.site import SitePasswordConfig

__all__ = [
    "AdminUser",
    "AttemptRecordRow",
    "LoginAttemptEntry",
    "SecurityEvent",
    "SitePasswordConfig",
]
