# gamebase/routes/bases.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from gamebase.database import get_db
from gamebase.game.ledger import GoldLedger
from gamebase.game.lifecycle import (
    CreateBaseRequest,
    create_base,
    destroy_base,
    get_base,
    list_bases,
    player_summary,
)
from gamebase.game.mapgrid import now_utc
from gamebase.game.movement import MoveBaseRequest, move_base
from gamebase.game.spawn import SpawnEngine
from gamebase.game.upgrades import active_upgrade
from gamebase.routes.deps import _is_admin, get_ledger, get_spawn_engine
from gamebase.routes.serializers import base_out, upgrade_out

router = APIRouter(tags=["bases"])


def _base_with_upgrade(db: Session, base, now) -> dict:
    out = base_out(base, now)
    up = active_upgrade(db, base.id)
    out["active_upgrade"] = upgrade_out(up, now) if up is not None else None
    return out


class CreateBaseBody(BaseModel):
    player_id: str = Field(min_length=1, max_length=50)
    base_type: str = Field(min_length=2, max_length=32)
    base_name: str = Field(min_length=1, max_length=100)
    x: Optional[int] = None
    y: Optional[int] = None
    spawn_location_id: Optional[str] = Field(default=None, max_length=64)
    alliance_id: Optional[str] = Field(default=None, max_length=50)
    is_subscriber: bool = False


class MoveBaseBody(BaseModel):
    x: int
    y: int
    use_teleport: bool = False


@router.post("/bases", status_code=status.HTTP_201_CREATED)
def create_base_endpoint(
    payload: CreateBaseBody,
    db: Session = Depends(get_db),
    spawn_engine: SpawnEngine = Depends(get_spawn_engine),
) -> dict:
    now = now_utc()
    base = create_base(
        db,
        CreateBaseRequest(
            player_id=payload.player_id,
            base_type=payload.base_type,
            base_name=payload.base_name,
            x=payload.x,
            y=payload.y,
            spawn_location_id=payload.spawn_location_id,
            alliance_id=payload.alliance_id,
            subscriber=payload.is_subscriber,
        ),
        now=now,
        spawn_engine=spawn_engine,
    )
    return {"base": base_out(base, now)}


@router.get("/players/{player_id}/bases")
def list_player_bases(
    player_id: str,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    subscriber: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> dict:
    now = now_utc()
    bases = list_bases(db, player_id, status=status_filter, limit=limit, offset=offset, now=now)
    return {
        "player_id": player_id,
        "bases": [_base_with_upgrade(db, b, now) for b in bases],
        "summary": player_summary(db, player_id, subscriber=subscriber, now=now),
        "pagination": {"limit": limit, "offset": offset, "returned": len(bases)},
    }


@router.get("/players/{player_id}/bases/{base_id}")
def get_player_base(
    player_id: str,
    base_id: str,
    db: Session = Depends(get_db),
) -> dict:
    now = now_utc()
    base = get_base(db, player_id, base_id, now=now)
    return {"base": _base_with_upgrade(db, base, now)}


@router.post("/players/{player_id}/bases/{base_id}/move")
def move_player_base(
    player_id: str,
    base_id: str,
    payload: MoveBaseBody,
    db: Session = Depends(get_db),
    ledger: GoldLedger = Depends(get_ledger),
) -> dict:
    now = now_utc()
    result = move_base(
        db,
        MoveBaseRequest(
            player_id=player_id,
            base_id=base_id,
            x=payload.x,
            y=payload.y,
            use_teleport=payload.use_teleport,
        ),
        now=now,
        ledger=ledger,
    )
    return {
        "base": base_out(result.base, now),
        "movement": {
            "from": {"x": result.from_x, "y": result.from_y},
            "to": {"x": int(result.base.x), "y": int(result.base.y)},
            "distance": round(result.distance, 2),
            "travel_seconds": result.travel_seconds,
            "arrival_time": result.arrival_time.isoformat(),
            "teleport": payload.use_teleport,
            "gold_cost": result.gold_cost,
        },
    }


@router.post("/players/{player_id}/bases/{base_id}/destroy")
def destroy_player_base(
    player_id: str,
    base_id: str,
    db: Session = Depends(get_db),
    x_admin_key: str | None = Header(default=None, alias="X-Admin-Key"),
) -> dict:
    # Combat resolution / admin tooling only
    if not _is_admin(x_admin_key):
        raise HTTPException(status_code=403, detail="Admin only")

    base = destroy_base(db, player_id, base_id)
    return {"base": base_out(base, now_utc())}
