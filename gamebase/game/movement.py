# gamebase/game/movement.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gamebase.config import MAX_MOVE_DISTANCE, MOVE_COOLDOWN_SECONDS
from gamebase.database import commit_or_conflict, persistence_error
from gamebase.errors import ConflictError, GameError, InvalidInputError, InvalidStateError
from gamebase.game.claims import claim_coordinate, release_claim
from gamebase.game.ledger import GoldLedger, LoggingGoldLedger, charge_gold
from gamebase.game.lifecycle import ACTIVE, apply_relocation, effective_status, load_base, settle_base
from gamebase.game.mapgrid import COORDINATE_LIMIT, distance, now_utc, within_limits
from gamebase.game.spawn import ensure_not_held
from gamebase.models.player_base import PlayerBase

logger = logging.getLogger(__name__)

# Normal moves never take less than 5 minutes
MIN_TRAVEL_SECONDS = 300
MIN_TELEPORT_GOLD = 50


@dataclass
class MoveBaseRequest:
    player_id: str
    base_id: str
    x: int
    y: int
    use_teleport: bool = False


@dataclass
class MovementResult:
    base: PlayerBase
    from_x: int
    from_y: int
    distance: float
    travel_seconds: int
    arrival_time: datetime
    gold_cost: Optional[int]


def travel_seconds(dist: float) -> int:
    # 1 distance unit ~ 1 second
    return max(MIN_TRAVEL_SECONDS, int(math.ceil(dist)))


def teleport_gold_cost(dist: float) -> int:
    # 1 gold per 10 units, minimum 50
    return max(MIN_TELEPORT_GOLD, int(math.ceil(dist / 10)))


def cooldown_remaining_seconds(base: PlayerBase, now: datetime) -> int:
    if base.last_moved_at is None:
        return 0
    elapsed = (now - base.last_moved_at).total_seconds()
    return max(0, int(math.ceil(MOVE_COOLDOWN_SECONDS - elapsed)))


def _validate_move(base: PlayerBase, req: MoveBaseRequest, now: datetime) -> float:
    """Cooldown, no-op and range checks. Returns the move distance."""
    if not req.use_teleport:
        remaining = cooldown_remaining_seconds(base, now)
        if remaining > 0:
            raise ConflictError(
                "Base movement on cooldown",
                "MOVEMENT_COOLDOWN",
                base_id=base.id,
                remaining_seconds=remaining,
                remaining_minutes=int(math.ceil(remaining / 60)),
            )

    if base.x == req.x and base.y == req.y:
        raise InvalidInputError(
            "New coordinates must be different from current location",
            "SAME_COORDINATES",
            current={"x": base.x, "y": base.y},
            requested={"x": req.x, "y": req.y},
        )

    dist = distance(base.x, base.y, req.x, req.y)
    if not req.use_teleport and dist > MAX_MOVE_DISTANCE:
        raise InvalidInputError(
            f"Movement distance exceeds maximum ({MAX_MOVE_DISTANCE} units)",
            "DISTANCE_TOO_FAR",
            distance=round(dist, 2),
            max_distance=MAX_MOVE_DISTANCE,
        )
    return dist


def move_base(
    db: Session,
    req: MoveBaseRequest,
    *,
    now: Optional[datetime] = None,
    ledger: Optional[GoldLedger] = None,
) -> MovementResult:
    if not within_limits(req.x, req.y):
        raise InvalidInputError(
            "Coordinates out of range",
            "VALIDATION_ERROR",
            field="coordinates",
            limit=COORDINATE_LIMIT,
        )

    now = now or now_utc()
    ledger = ledger or LoggingGoldLedger()

    try:
        base = load_base(db, req.player_id, req.base_id)
        settle_base(db, base, now)

        status = effective_status(base, now)
        if status != ACTIVE:
            raise InvalidStateError(
                f"Cannot move base with status: {status}",
                "INVALID_BASE_STATUS",
                base_id=base.id,
                status=status,
            )

        dist = _validate_move(base, req, now)
        from_x, from_y = base.x, base.y

        if req.use_teleport:
            seconds = 0
            gold_cost: Optional[int] = teleport_gold_cost(dist)
            arrival: Optional[datetime] = None
        else:
            seconds = travel_seconds(dist)
            gold_cost = None
            arrival = now + timedelta(seconds=seconds)

        # Destination first; the old claim goes in the same transaction
        ensure_not_held(db, req.player_id, req.x, req.y, now)
        claim_coordinate(
            db,
            x=req.x,
            y=req.y,
            base_id=base.id,
            now=now,
            kind="occupied" if req.use_teleport else "inbound",
            expires_at=arrival,
        )
        release_claim(db, x=from_x, y=from_y, base_id=base.id)
        apply_relocation(db, base, x=req.x, y=req.y, now=now, arrival_time=arrival)

        commit_or_conflict(
            db,
            "COORDINATES_OCCUPIED",
            "Destination coordinates are occupied",
            coordinates={"x": req.x, "y": req.y},
        )
    except GameError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        raise persistence_error(db, exc) from exc

    db.refresh(base)

    if gold_cost is not None:
        charge_gold(ledger, req.player_id, gold_cost, reason="teleport", reference=base.id)

    logger.info(
        f"Base moved player={req.player_id} base={base.id} from {from_x},{from_y} "
        f"to {base.x},{base.y} teleport={req.use_teleport} travel={seconds}s"
    )
    return MovementResult(
        base=base,
        from_x=from_x,
        from_y=from_y,
        distance=dist,
        travel_seconds=seconds,
        arrival_time=arrival or now,
        gold_cost=gold_cost,
    )
