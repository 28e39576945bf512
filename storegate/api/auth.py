import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy import select

from storegate.api.deps import (
    ADMIN_COOKIE, SITE_COOKIE, AppSettings, DBSession, Gate, SitePasswords, Tokens,
    bearer, extract_token
)
from storegate.middleware.security import get_client_ip
from storegate.models import AdminUser
from storegate.schemas.auth import (
    AdminLoginRequest, AdminUserInfo, AuthStatusResponse, IPStatusResponse,
    LoginResponse, MessageResponse, SiteUnlockRequest, TokenValidationResponse
)
from storegate.services.gate import AttemptOutcome, AttemptStatus
from storegate.services.policy import Verdict
from storegate.utils.security import dummy_verify, verify_password


logger = logging.getLogger(__name__)

router = APIRouter()

GENERIC_LOGIN_ERROR = "Incorrect email or password"


def _raise_for_outcome(outcome: AttemptOutcome, failure_message: str) -> None:
    """
    Map a non-successful gate outcome onto an HTTP error.

    Only attempts refused up front get 403 (banned) or 429 (cooling down).
    A wrong credential is 401 even when it is the one that trips the
    cooldown or ban; the next attempt sees the block.
    """
    if outcome.status != AttemptStatus.REJECTED:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=failure_message)

    if outcome.verdict == Verdict.BAN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=outcome.reason)

    if outcome.verdict == Verdict.COOLDOWN:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=outcome.reason,
            headers={"Retry-After": str(outcome.retry_after)},
        )

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=failure_message)


def _set_auth_cookie(response: Response, name: str, token: str, max_age: int, secure: bool) -> None:
    response.set_cookie(
        name,
        token,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=secure,
        samesite="strict",
    )


@router.post("/unlock", response_model=LoginResponse)
async def unlock_site(
    data: SiteUnlockRequest,
    req: Request,
    response: Response,
    gate: Gate,
    tokens: Tokens,
    site_passwords: SitePasswords,
    settings: AppSettings
):
    """Storefront password check."""
    site = await site_passwords.get()
    if not site.enabled:
        token = tokens.issue({"sub": "site", "type": "site", "authorized": True})
        _set_auth_cookie(response, SITE_COOKIE, token, tokens.max_age, settings.cookie_secure)
        return LoginResponse(success=True, message="Password protection is disabled", token=token)

    async def check() -> bool:
        if not data.password or not site.password_hash:
            return False
        return verify_password(data.password, site.password_hash)

    outcome = await gate.attempt(
        get_client_ip(req, settings.trusted_proxies),
        check,
        endpoint="/api/auth/unlock",
        user_agent=req.headers.get("User-Agent"),
    )

    if outcome.status != AttemptStatus.SUCCESS:
        if outcome.status == AttemptStatus.FAILED and not data.password:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Password is required")
        _raise_for_outcome(outcome, "Incorrect password")

    token = tokens.issue({"sub": "site", "type": "site", "authorized": True})
    _set_auth_cookie(response, SITE_COOKIE, token, tokens.max_age, settings.cookie_secure)
    return LoginResponse(success=True, message="Password verified", token=token)


@router.post("/admin/login", response_model=LoginResponse)
async def admin_login(
    data: AdminLoginRequest,
    req: Request,
    response: Response,
    db: DBSession,
    gate: Gate,
    tokens: Tokens,
    settings: AppSettings
):
    """Admin login endpoint."""
    email = data.email.strip().lower()

    async def check() -> Optional[AdminUserInfo]:
        if not email or not data.password:
            return None
        result = await db.execute(select(AdminUser).where(AdminUser.email == email))
        user = result.scalar_one_or_none()
        if user is None or not user.is_active:
            dummy_verify()
            return None
        if not verify_password(data.password, user.password_hash):
            return None
        return AdminUserInfo(email=user.email, uid=str(user.id))

    outcome = await gate.attempt(
        get_client_ip(req, settings.trusted_proxies),
        check,
        endpoint="/api/auth/admin/login",
        credential_id=email or None,
        user_agent=req.headers.get("User-Agent"),
    )

    if outcome.status != AttemptStatus.SUCCESS:
        missing = not email or not data.password
        if outcome.status == AttemptStatus.FAILED and missing:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email and password are required")
        _raise_for_outcome(outcome, GENERIC_LOGIN_ERROR)

    user: AdminUserInfo = outcome.principal
    logger.info("Admin %s logged in", user.email)
    token = tokens.issue({
        "sub": user.uid,
        "uid": user.uid,
        "email": user.email,
        "type": "admin",
        "admin": True,
    })
    _set_auth_cookie(response, ADMIN_COOKIE, token, tokens.max_age, settings.cookie_secure)
    return LoginResponse(
        success=True,
        message="Logged in",
        token=token,
        user=user,
    )


@router.get("/ip-status", response_model=IPStatusResponse)
async def ip_status(req: Request, gate: Gate, settings: AppSettings):
    """Ban / cooldown state of the caller's IP, for disabling the login form."""
    decision = await gate.status(get_client_ip(req, settings.trusted_proxies))
    return IPStatusResponse(
        banned=decision.verdict == Verdict.BAN,
        cooldown=decision.cooldown_until,
    )


@router.get("/token", response_model=TokenValidationResponse)
async def validate_token(
    req: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer)],
    tokens: Tokens
):
    """Check a bearer or cookie token."""
    claims = tokens.verify(extract_token(req, credentials, ADMIN_COOKIE, SITE_COOKIE))
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - session expired or invalid",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return TokenValidationResponse(valid=True, user=claims, expires=claims["exp"])


@router.get("/status", response_model=AuthStatusResponse)
async def auth_status(
    req: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer)],
    db: DBSession,
    tokens: Tokens,
    site_passwords: SitePasswords
):
    """Whether the caller holds a valid token, and whether it is an active admin's."""
    claims = tokens.verify(extract_token(req, credentials, ADMIN_COOKIE, SITE_COOKIE))

    is_admin = False
    if claims and claims.get("admin") is True and claims.get("email"):
        result = await db.execute(
            select(AdminUser).where(AdminUser.email == claims["email"])
        )
        user = result.scalar_one_or_none()
        is_admin = user is not None and user.is_active

    site = await site_passwords.get()
    return AuthStatusResponse(
        authenticated=claims is not None,
        isAdmin=is_admin,
        passwordProtectionEnabled=site.enabled,
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response, settings: AppSettings):
    """Expire both auth cookies. Tokens stay valid until they expire."""
    for name in (ADMIN_COOKIE, SITE_COOKIE):
        response.delete_cookie(
            name,
            path="/",
            httponly=True,
            secure=settings.cookie_secure,
            samesite="strict",
        )
    return MessageResponse(success=True, message="Logged out")
