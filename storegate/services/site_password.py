"""
Storefront password settings, editable at runtime by an admin.

Until an admin saves them, the values come from the environment
(``site_password_protection_enabled`` / ``site_password_hash``).
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storegate.config import Settings
from storegate.models.site import SitePasswordConfig
from storegate.utils.security import get_password_hash
from storegate.utils.time import as_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SitePassword:
    enabled: bool
    password_hash: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def password_set(self) -> bool:
        return bool(self.password_hash)


class SitePasswordService:
    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings

    async def _config(self) -> Optional[SitePasswordConfig]:
        result = await self.db.execute(select(SitePasswordConfig).limit(1))
        return result.scalar_one_or_none()

    async def get(self) -> SitePassword:
        """Effective settings: the saved row, else the environment."""
        config = await self._config()
        if config is None:
            return SitePassword(
                enabled=self.settings.site_password_protection_enabled,
                password_hash=self.settings.site_password_hash,
            )
        return SitePassword(
            enabled=config.protection_enabled,
            password_hash=config.password_hash or self.settings.site_password_hash,
            updated_by=config.updated_by,
            updated_at=as_utc(config.updated_at),
        )

    async def update(
        self,
        admin_username: str,
        password: Optional[str] = None,
        enabled: Optional[bool] = None
    ) -> SitePassword:
        """Change the password and/or the toggle. Fields left as None keep their value."""
        config = await self._config()
        if config is None:
            config = SitePasswordConfig(
                protection_enabled=self.settings.site_password_protection_enabled
            )
            self.db.add(config)

        if password is not None:
            config.password_hash = get_password_hash(password)
        if enabled is not None:
            config.protection_enabled = enabled
        config.updated_by = admin_username
        config.updated_at = utcnow()

        await self.db.commit()
        logger.info(
            "Site password settings updated by %s (enabled=%s, password %s)",
            admin_username,
            config.protection_enabled,
            "changed" if password is not None else "unchanged",
        )
        return await self.get()
