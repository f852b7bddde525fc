# gamebase/routes/deps.py
from __future__ import annotations

import secrets

from gamebase import config
from gamebase.game.ledger import GoldLedger, LoggingGoldLedger
from gamebase.game.spawn import SpawnEngine


def _is_admin(x_admin_key: str | None) -> bool:
    admin_key = config.ADMIN_KEY
    return bool(admin_key) and bool(x_admin_key) and secrets.compare_digest(x_admin_key, admin_key)


def get_ledger() -> GoldLedger:
    # Overridden in tests / deployments with a real resource client
    return LoggingGoldLedger()


def get_spawn_engine() -> SpawnEngine:
    return SpawnEngine()
