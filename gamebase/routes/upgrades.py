# gamebase/routes/upgrades.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from gamebase.database import get_db
from gamebase.game.ledger import GoldLedger
from gamebase.game.lifecycle import load_base
from gamebase.game.mapgrid import now_utc
from gamebase.game.upgrades import StartUpgradeRequest, list_upgrades, start_upgrade
from gamebase.routes.deps import get_ledger
from gamebase.routes.serializers import base_out, upgrade_out

router = APIRouter(prefix="/players/{player_id}/bases/{base_id}", tags=["upgrades"])


class UpgradeBody(BaseModel):
    upgrade_type: str = Field(default="level", min_length=1, max_length=24)
    skip_time: bool = False


@router.post("/upgrade")
def start_base_upgrade(
    player_id: str,
    base_id: str,
    payload: UpgradeBody,
    db: Session = Depends(get_db),
    ledger: GoldLedger = Depends(get_ledger),
) -> dict:
    now = now_utc()
    upgrade = start_upgrade(
        db,
        StartUpgradeRequest(
            player_id=player_id,
            base_id=base_id,
            upgrade_type=payload.upgrade_type,
            skip_time=payload.skip_time,
        ),
        now=now,
        ledger=ledger,
    )
    base = load_base(db, player_id, base_id)
    return {
        "upgrade": upgrade_out(upgrade, now),
        "base": base_out(base, now),
        "instant": payload.skip_time,
    }


@router.get("/upgrades")
def base_upgrade_history(
    player_id: str,
    base_id: str,
    db: Session = Depends(get_db),
) -> dict:
    now = now_utc()
    upgrades = list_upgrades(db, player_id, base_id)
    return {
        "base_id": base_id,
        "upgrades": [upgrade_out(u, now) for u in upgrades],
    }
