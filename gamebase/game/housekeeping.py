# gamebase/game/housekeeping.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gamebase.game.mapgrid import now_utc
from gamebase.game.upgrades import IN_PROGRESS
from gamebase.models.base_upgrade import BaseUpgrade
from gamebase.models.spawn_reservation import SpawnReservation

logger = logging.getLogger(__name__)


def purge_expired(db: Session, now: Optional[datetime] = None) -> dict:
    """
    Drop lapsed spawn holds and finished upgrade rows past their TTL.

    Best-effort: a failed purge is logged and rolled back, the next run
    picks the rows up again. Live state never depends on this running.
    """
    now = now or now_utc()
    try:
        spawn = db.execute(
            delete(SpawnReservation)
            .where(SpawnReservation.expires_at.is_not(None), SpawnReservation.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        upgrades = db.execute(
            delete(BaseUpgrade)
            .where(
                BaseUpgrade.status != IN_PROGRESS,
                BaseUpgrade.expires_at.is_not(None),
                BaseUpgrade.expires_at <= now,
            )
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(f"Purge failed, will retry next run: {exc}")
        return {"spawn_reservations": 0, "upgrades": 0, "ok": False}

    out = {"spawn_reservations": int(spawn.rowcount or 0), "upgrades": int(upgrades.rowcount or 0), "ok": True}
    if out["spawn_reservations"] or out["upgrades"]:
        logger.info(f"Purged {out['spawn_reservations']} spawn holds, {out['upgrades']} upgrade records")
    return out
