# gamebase/routes/spawn.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from gamebase.database import get_db
from gamebase.game.mapgrid import now_utc
from gamebase.game.spawn import MAX_FRIENDS, SpawnEngine, SpawnRequest
from gamebase.routes.deps import get_spawn_engine
from gamebase.routes.serializers import reservation_out

router = APIRouter(prefix="/spawn", tags=["spawn"])


class SpawnBody(BaseModel):
    player_id: str = Field(min_length=1, max_length=50)
    preferred_region: str = Field(default="random", max_length=16)
    group_with_friends: bool = True
    friend_ids: list[str] = Field(default_factory=list)


@router.post("/select")
def select_spawn_location(
    payload: SpawnBody,
    db: Session = Depends(get_db),
    engine: SpawnEngine = Depends(get_spawn_engine),
) -> dict:
    picked = engine.select_spawn(
        db,
        SpawnRequest(
            player_id=payload.player_id,
            preferred_region=payload.preferred_region,
            group_with_friends=payload.group_with_friends,
            friend_ids=payload.friend_ids[:MAX_FRIENDS],
        ),
        now=now_utc(),
    )
    c = picked.candidate
    return {
        "reservation": reservation_out(picked.reservation),
        "score": {
            "total": round(c.score, 4),
            "density": round(c.density, 4),
            "safety": round(c.safety, 4),
            "resource_access": round(c.resource_access, 4),
            "friend_proximity": round(c.friend_proximity, 4),
        },
        "attempts": picked.attempts,
    }
