#!/usr/bin/env python3
"""
Cron tasks for storegate.

Usage:
  python scripts/cron_tasks.py cleanup_security
  python scripts/cron_tasks.py analyze_threats

Recommended crontab:
  0 3 * * * /opt/storegate/venv/bin/python /opt/storegate/scripts/cron_tasks.py cleanup_security
  0 * * * * /opt/storegate/venv/bin/python /opt/storegate/scripts/cron_tasks.py analyze_threats
"""

import asyncio
import sys
from datetime import datetime

from storegate.config import get_settings
from storegate.database import close_db, create_engine, create_session_maker
from storegate.services.security_service import SecurityService


async def cleanup_security():
    """Drop old attempt and event rows, release long-idle bans if configured."""
    settings = get_settings()
    print(f"[{datetime.now()}] Cleaning up security records...")

    engine = create_engine(settings.database_url)
    async with create_session_maker(engine)() as db:
        deleted = await SecurityService(db).cleanup_old_records(
            retention_days=settings.log_retention_days,
            ban_release_days=settings.ban_release_days
        )
    await close_db(engine)

    print(f"Login attempts removed: {deleted['login_attempts']}")
    print(f"Security events removed: {deleted['security_events']}")
    print(f"Bans released: {deleted['released_bans']}")


async def analyze_threats():
    """Print IPs and accounts with many recent failures."""
    settings = get_settings()
    print(f"[{datetime.now()}] Analyzing login attempts...")

    engine = create_engine(settings.database_url)
    async with create_session_maker(engine)() as db:
        service = SecurityService(db)
        threats = await service.analyze_threats()
        if threats:
            await service.log_event(
                "threats_detected",
                details=", ".join(f"{t['subject']} ({t['severity']})" for t in threats)
            )
    await close_db(engine)

    if not threats:
        print("No threats detected")
        return
    for threat in threats:
        print(
            f"{threat['severity'].upper():6} {threat['type']}: {threat['subject']} "
            f"{threat['failed_attempts']}/{threat['total_attempts']} failed"
        )


def main():
    if len(sys.argv) < 2:
        print("Usage: python cron_tasks.py <task>")
        print("Tasks: cleanup_security, analyze_threats")
        sys.exit(1)

    task = sys.argv[1]

    if task == "cleanup_security":
        asyncio.run(cleanup_security())
    elif task == "analyze_threats":
        asyncio.run(analyze_threats())
    else:
        print(f"Unknown task: {task}")
        sys.exit(1)


if __name__ == "__main__":
    main()
