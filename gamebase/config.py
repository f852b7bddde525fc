# gamebase/config.py
from __future__ import annotations

import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent

DATA_DIR = PROJECT_ROOT / "data"
DATA_DIR.mkdir(parents=True, exist_ok=True)

DB_PATH = DATA_DIR / "gamebase.db"
DATABASE_URL: str = os.getenv("DATABASE_URL", f"sqlite:///{DB_PATH.as_posix()}")

# Admin override key (single source of truth)
ADMIN_KEY: str = os.getenv("ADMIN_KEY", "")

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# Base limits (free players / subscribers)
MAX_BASES_DEFAULT: int = int(os.getenv("MAX_BASES_DEFAULT", "5"))
MAX_BASES_SUBSCRIBER: int = int(os.getenv("MAX_BASES_SUBSCRIBER", "10"))

# Movement
MOVE_COOLDOWN_SECONDS: int = int(os.getenv("MOVE_COOLDOWN_SECONDS", "3600"))
MAX_MOVE_DISTANCE: int = int(os.getenv("MAX_MOVE_DISTANCE", "1000"))

# Spawn holds are short-lived
SPAWN_HOLD_SECONDS: int = int(os.getenv("SPAWN_HOLD_SECONDS", "300"))

# Finished upgrade rows are purged this long after completion
UPGRADE_RECORD_TTL_DAYS: int = int(os.getenv("UPGRADE_RECORD_TTL_DAYS", "7"))
