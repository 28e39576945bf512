from storegate.services.policy import AttemptRecord, Decision, PolicyConfig, RateLimitPolicy, Verdict
from storegate.services.ledger import (
    AttemptLedger, LedgerConflictError, LedgerStore, LedgerUnavailableError,
    MemoryLedgerStore, SqlLedgerStore
)
from storegate.services.audit import AttemptLog, AttemptLogEntry, MemoryAttemptLog, SqlAttemptLog
from storegate.services.gate import AttemptOutcome, AttemptStatus, LoginGate
from storegate.services.tokens import TokenIssuer
from storegate.services.security_service import SecurityService
from storegate.services.site_password import SitePassword, SitePasswordService

__all__ = [
    "AttemptRecord", "Decision", "PolicyConfig", "RateLimitPolicy", "Verdict",
    "AttemptLedger", "LedgerConflictError", "LedgerStore", "LedgerUnavailableError",
    "MemoryLedgerStore", "SqlLedgerStore",
    "AttemptLog", "AttemptLogEntry", "MemoryAttemptLog", "SqlAttemptLog",
    "AttemptOutcome", "AttemptStatus", "LoginGate",
    "TokenIssuer",
    "SecurityService",
    "SitePassword", "SitePasswordService",
]
