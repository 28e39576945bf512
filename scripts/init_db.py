#!/usr/bin/env python3
"""
Initialize database tables and the first admin user.

Usage:
  python scripts/init_db.py <admin_email> <admin_password>
  ADMIN_EMAIL=... ADMIN_PASSWORD=... python scripts/init_db.py

Set SITE_PASSWORD to also print a hash for SITE_PASSWORD_HASH.
"""

import asyncio
import os
import sys

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storegate.config import get_settings
from storegate.database import close_db, create_engine, create_session_maker, init_db
from storegate.models import AdminUser
from storegate.utils.security import get_password_hash


async def create_admin_user(db: AsyncSession, email: str, password: str) -> None:
    """Create initial admin user."""
    email = email.strip().lower()
    result = await db.execute(select(AdminUser).where(AdminUser.email == email))
    existing = result.scalar_one_or_none()

    if existing:
        print(f"Admin user '{email}' already exists")
        return

    admin = AdminUser(
        email=email,
        password_hash=get_password_hash(password),
        is_active=True
    )
    db.add(admin)
    await db.commit()
    print(f"Created admin user: {email}")


async def main(email: str, password: str):
    """Initialize database."""
    settings = get_settings()
    print("Initializing storegate database...")

    engine = create_engine(settings.database_url)
    await init_db(engine)
    print("Database tables created")

    async with create_session_maker(engine)() as db:
        await create_admin_user(db, email, password)

    await close_db(engine)

    site_password = os.environ.get("SITE_PASSWORD")
    if site_password:
        print(f"\nSITE_PASSWORD_HASH={get_password_hash(site_password)}")

    print("\nDatabase initialization complete!")


if __name__ == "__main__":
    args = sys.argv[1:]
    admin_email = args[0] if len(args) > 0 else os.environ.get("ADMIN_EMAIL")
    admin_password = args[1] if len(args) > 1 else os.environ.get("ADMIN_PASSWORD")

    if not admin_email or not admin_password:
        print(__doc__)
        sys.exit(1)

    asyncio.run(main(admin_email, admin_password))
