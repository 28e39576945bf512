from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class SitePasswordUpdateRequest(BaseModel):
    password: Optional[str] = Field(default=None, min_length=4, max_length=256)
    enabled: Optional[bool] = None


class SitePasswordStatusResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    enabled: bool
    passwordSet: bool
    updatedBy: Optional[str] = None
    updatedAt: Optional[datetime] = None
