"""Configuration for the squash session bot."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Discord
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN", "")


def _parse_int(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


# Channel where announcements are posted and pinned
MAIN_CHANNEL_ID = _parse_int(os.getenv("MAIN_CHANNEL_ID"))
# Channel that receives the audit log (event_created, payment_received, ...)
LOG_CHANNEL_ID = _parse_int(os.getenv("LOG_CHANNEL_ID"))
# Discord user ID of the global admin (fallback owner for spawned events)
ADMIN_USER_ID = _parse_int(os.getenv("ADMIN_USER_ID"))

# Scheduling and pricing defaults (overridable via the settings table)
TIMEZONE = os.getenv("TIMEZONE", "Europe/Belgrade")
COURT_PRICE = _parse_int(os.getenv("COURT_PRICE")) or 2000
CURRENCY = os.getenv("CURRENCY", "din")
ANNOUNCEMENT_DEADLINE = os.getenv("ANNOUNCEMENT_DEADLINE", "-1d 12:00")
SCAFFOLD_CHECK_MINUTES = _parse_int(os.getenv("SCAFFOLD_CHECK_MINUTES")) or 5

# Database
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(__file__).parent / 'squash.db'}",
)

# Web -> Bot internal API (for triggering the scaffold check from the web API)
BOT_INTERNAL_URL = os.getenv("BOT_INTERNAL_URL", "http://bot:8001")
INTERNAL_API_SECRET = os.getenv("INTERNAL_API_SECRET", "")  # Shared secret for web->bot requests

# Key required by the public API for mutating endpoints (X-API-Key header)
API_KEY = os.getenv("API_KEY", "")
