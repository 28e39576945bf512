from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field


class SiteUnlockRequest(BaseModel):
    password: str = Field(default="", max_length=256)


class AdminLoginRequest(BaseModel):
    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=256)


class AdminUserInfo(BaseModel):
    email: str
    uid: str


class LoginResponse(BaseModel):
    success: bool
    message: str
    token: Optional[str] = None
    user: Optional[AdminUserInfo] = None


class IPStatusResponse(BaseModel):
    success: bool = True
    banned: bool
    cooldown: Optional[datetime] = None


class TokenValidationResponse(BaseModel):
    success: bool = True
    valid: bool
    user: dict[str, Any]
    expires: int


class AuthStatusResponse(BaseModel):
    success: bool = True
    authenticated: bool
    isAdmin: bool
    passwordProtectionEnabled: bool


class MessageResponse(BaseModel):
    success: bool
    message: str
