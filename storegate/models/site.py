from datetime import datetime
from typing import Optional
from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from storegate.database import Base
from storegate.utils.time import utcnow


class SitePasswordConfig(Base):
    """Storefront password protection (singleton). Once saved it overrides the environment."""
    __tablename__ = "site_password_config"

    id: Mapped[int] = mapped_column(primary_key=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    protection_enabled: Mapped[bool] = mapped_column(default=True)
    updated_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
