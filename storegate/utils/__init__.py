from storegate.utils.security import verify_password, get_password_hash, dummy_verify
from storegate.utils.identity import client_identity, storage_key, UNKNOWN_IDENTITY
from storegate.utils.user_agent import parse_user_agent
from storegate.utils.time import utcnow, as_utc

__all__ = [
    "verify_password", "get_password_hash", "dummy_verify",
    "client_identity", "storage_key", "UNKNOWN_IDENTITY",
    "parse_user_agent",
    "utcnow", "as_utc",
]
