from typing import Annotated, Any, Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from storegate.config import Settings
from storegate.database import get_db
from storegate.services.audit import SqlAttemptLog
from storegate.services.gate import LoginGate
from storegate.services.ledger import AttemptLedger, SqlLedgerStore
from storegate.services.security_service import SecurityService
from storegate.services.site_password import SitePasswordService
from storegate.services.tokens import TokenIssuer


SITE_COOKIE = "authToken"
ADMIN_COOKIE = "adminAuthToken"

bearer = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_login_gate(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> LoginGate:
    """Request-scoped gate over the database-backed ledger."""
    state = request.app.state
    return LoginGate(
        ledger=AttemptLedger(SqlLedgerStore(db)),
        policy=state.policy,
        attempt_log=SqlAttemptLog(db),
        clock=state.clock,
        sleep=state.sleep,
    )


def get_security_service(db: Annotated[AsyncSession, Depends(get_db)]) -> SecurityService:
    return SecurityService(db)


def get_site_password_service(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> SitePasswordService:
    return SitePasswordService(db, request.app.state.settings)


def extract_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
    *cookie_names: str
) -> Optional[str]:
    """Bearer header first, then the named cookies in order."""
    if credentials is not None and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    for name in cookie_names:
        token = request.cookies.get(name)
        if token:
            return token
    return None


async def get_current_claims(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer)],
    tokens: Annotated[TokenIssuer, Depends(get_token_issuer)]
) -> dict[str, Any]:
    """Dependency for any valid session token (site or admin)."""
    token = extract_token(request, credentials, ADMIN_COOKIE, SITE_COOKIE)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization token is missing",
            headers={"WWW-Authenticate": "Bearer"},
        )

    claims = tokens.verify(token)
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claims


async def get_current_admin(
    claims: Annotated[dict[str, Any], Depends(get_current_claims)]
) -> dict[str, Any]:
    """Dependency for admin-only endpoints."""
    if claims.get("admin") is not True:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions. Admin access required.",
        )
    return claims


# Type aliases for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Tokens = Annotated[TokenIssuer, Depends(get_token_issuer)]
Gate = Annotated[LoginGate, Depends(get_login_gate)]
Security = Annotated[SecurityService, Depends(get_security_service)]
SitePasswords = Annotated[SitePasswordService, Depends(get_site_password_service)]
CurrentClaims = Annotated[dict[str, Any], Depends(get_current_claims)]
CurrentAdmin = Annotated[dict[str, Any], Depends(get_current_admin)]
