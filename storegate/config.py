from pydantic_settings import BaseSettings
from pydantic import Field, model_validator
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # Tokens
    secret_key: str = Field(...)  # Required, no insecure default
    jwt_algorithm: str = Field(default="HS256")
    jwt_access_token_expire_minutes: int = Field(default=60 * 24, ge=1)  # 24 hours

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./data/storegate.db")

    # Site password gate
    site_password_protection_enabled: bool = Field(default=True)
    site_password_hash: Optional[str] = Field(default=None)

    # Login attempt policy
    login_cooldown_threshold: int = Field(default=2, ge=1)
    login_ban_threshold: int = Field(default=5, ge=2)
    login_cooldown_seconds: int = Field(default=60, ge=1)
    login_delay_base_ms: int = Field(default=250, ge=0)
    login_delay_max_ms: int = Field(default=10_000, ge=0)

    # Maintenance sweep
    ban_release_days: Optional[int] = Field(default=None, ge=1)  # None = bans stay until cleared
    log_retention_days: int = Field(default=30, ge=1)

    # HTTP
    cookie_secure: bool = Field(default=True)
    # Peers whose X-Forwarded-For / X-Real-IP / Client-IP headers are believed:
    # "*", exact hosts, IPs or CIDR ranges. Empty = use the socket peer only.
    trusted_proxies: list[str] = Field(default_factory=list)
    cors_origins: list[str] = Field(default_factory=list)
    log_level: str = Field(default="INFO")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }

    @model_validator(mode="after")
    def _check_thresholds(self) -> "Settings":
        if self.login_ban_threshold <= self.login_cooldown_threshold:
            raise ValueError("login_ban_threshold must be greater than login_cooldown_threshold")
        if self.login_delay_base_ms > self.login_delay_max_ms:
            raise ValueError("login_delay_base_ms must not exceed login_delay_max_ms")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
