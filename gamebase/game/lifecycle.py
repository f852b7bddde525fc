# gamebase/game/lifecycle.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional, TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gamebase.config import MAX_BASES_DEFAULT, MAX_BASES_SUBSCRIBER
from gamebase.database import commit_or_conflict, insert_if_absent, persistence_error
from gamebase.errors import ConflictError, GameError, InvalidInputError, InvalidStateError, NotFoundError
from gamebase.game.claims import claim_coordinate, promote_claim, release_claim
from gamebase.game.mapgrid import coordinate_hash, map_section_id, now_utc, within_limits, COORDINATE_LIMIT
from gamebase.game.templates import BASE_TYPES, require_template
from gamebase.models.player_base import PlayerBase
from gamebase.models.player_base_counter import PlayerBaseCounter

if TYPE_CHECKING:
    from gamebase.game.spawn import SpawnEngine

logger = logging.getLogger(__name__)

ACTIVE = "active"
BUILDING = "building"
MOVING = "moving"
DESTROYED = "destroyed"

BASE_STATUSES: tuple[str, ...] = (ACTIVE, BUILDING, MOVING, DESTROYED)

BASE_NAME_MAX = 100


# ----------------------------
# Status
# ----------------------------

def effective_status(base: PlayerBase, now: datetime) -> str:
    """
    Status derived from the stored status plus elapsed time.

    A base stored as "building" whose build time has passed is active, as is a
    "moving" base past its arrival time. The stored field may lag behind; it
    is only corrected opportunistically by settle_base.
    """
    if base.status == BUILDING and base.build_completion_time is not None and now >= base.build_completion_time:
        return ACTIVE
    if base.status == MOVING and base.arrival_time is not None and now >= base.arrival_time:
        return ACTIVE
    return base.status


def max_bases_allowed(subscriber: bool) -> int:
    return MAX_BASES_SUBSCRIBER if subscriber else MAX_BASES_DEFAULT


def load_base(db: Session, player_id: str, base_id: str) -> PlayerBase:
    base = db.execute(
        select(PlayerBase)
        .where(PlayerBase.id == base_id, PlayerBase.player_id == player_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if base is None:
        raise NotFoundError("Base not found", "BASE_NOT_FOUND", player_id=player_id, base_id=base_id)
    return base


# ----------------------------
# Transition API (the only writer of player_bases rows)
# ----------------------------

def _cas_update(db: Session, base: PlayerBase, **values: Any) -> None:
    """UPDATE ... WHERE version = <version we read>; losing the race is a conflict."""
    result = db.execute(
        update(PlayerBase)
        .where(PlayerBase.id == base.id, PlayerBase.version == base.version)
        .values(version=PlayerBase.version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(
            "Base was modified by another request",
            "BASE_CONCURRENT_MODIFICATION",
            base_id=base.id,
            expected_version=base.version,
        )
    db.refresh(base)


def apply_level_up(db: Session, base: PlayerBase, delta: dict[str, int], now: datetime) -> None:
    _cas_update(
        db,
        base,
        level=PlayerBase.level + 1,
        defense=PlayerBase.defense + int(delta.get("defense", 0)),
        storage=PlayerBase.storage + int(delta.get("storage", 0)),
        production=PlayerBase.production + int(delta.get("production", 0)),
        last_active_at=now,
    )


def apply_relocation(
    db: Session,
    base: PlayerBase,
    *,
    x: int,
    y: int,
    now: datetime,
    arrival_time: Optional[datetime],
) -> None:
    """Point the base at its new coordinate. ``arrival_time`` None means teleport."""
    values: dict[str, Any] = {
        "x": x,
        "y": y,
        "map_section_id": map_section_id(x, y),
        "coordinate_hash": coordinate_hash(x, y),
        "last_moved_at": now,
        "last_active_at": now,
    }
    if arrival_time is None:
        values["status"] = ACTIVE
        values["arrival_time"] = None
    else:
        values["status"] = MOVING
        values["arrival_time"] = arrival_time
    _cas_update(db, base, **values)


def settle_base(db: Session, base: PlayerBase, now: datetime) -> PlayerBase:
    """
    Persist the effective status (and any due upgrade) for ``base``.

    Does not commit; callers fold it into their own transaction.
    """
    resolved = effective_status(base, now)
    if resolved != base.status:
        arrived = base.status == MOVING
        _cas_update(db, base, status=resolved)
        if arrived:
            promote_claim(db, x=base.x, y=base.y, base_id=base.id)
        logger.info(f"Base {base.id} settled to {resolved}")

    # Upgrade settlement lives with the upgrade controller
    from gamebase.game.upgrades import settle_upgrade

    settle_upgrade(db, base, now)
    return base


# ----------------------------
# Per-player base limit
# ----------------------------

def _take_base_slot(db: Session, player_id: str, max_bases: int, now: datetime) -> None:
    """Atomic increment-with-cap on the player's counter row."""
    insert_if_absent(
        db,
        PlayerBaseCounter,
        {"player_id": player_id, "base_count": 0, "updated_at": now},
    )
    result = db.execute(
        update(PlayerBaseCounter)
        .where(PlayerBaseCounter.player_id == player_id, PlayerBaseCounter.base_count < max_bases)
        .values(base_count=PlayerBaseCounter.base_count + 1, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        current = db.execute(
            select(PlayerBaseCounter.base_count).where(PlayerBaseCounter.player_id == player_id)
        ).scalar_one()
        raise ConflictError(
            f"Player has reached maximum base limit ({max_bases})",
            "BASE_LIMIT_REACHED",
            player_id=player_id,
            current_count=int(current),
            max_bases=max_bases,
        )


def _return_base_slot(db: Session, player_id: str, now: datetime) -> None:
    db.execute(
        update(PlayerBaseCounter)
        .where(PlayerBaseCounter.player_id == player_id, PlayerBaseCounter.base_count > 0)
        .values(base_count=PlayerBaseCounter.base_count - 1, updated_at=now)
        .execution_options(synchronize_session=False)
    )


# ----------------------------
# Create / destroy
# ----------------------------

@dataclass
class CreateBaseRequest:
    player_id: str
    base_type: str
    base_name: str
    x: Optional[int] = None
    y: Optional[int] = None
    spawn_location_id: Optional[str] = None
    alliance_id: Optional[str] = None
    subscriber: bool = False


def _validate_create(req: CreateBaseRequest) -> None:
    if req.base_type not in BASE_TYPES:
        raise InvalidInputError(
            "Unknown base type",
            "VALIDATION_ERROR",
            base_type=req.base_type,
            accepted=list(BASE_TYPES),
        )
    name = (req.base_name or "").strip()
    if not name or len(name) > BASE_NAME_MAX:
        raise InvalidInputError("Base name must be 1-100 characters", "VALIDATION_ERROR", field="base_name")
    if (req.x is None) != (req.y is None):
        raise InvalidInputError("Both x and y are required", "VALIDATION_ERROR", field="coordinates")
    if req.x is not None and not within_limits(req.x, req.y):
        raise InvalidInputError(
            "Coordinates out of range",
            "VALIDATION_ERROR",
            field="coordinates",
            limit=COORDINATE_LIMIT,
        )


def create_base(
    db: Session,
    req: CreateBaseRequest,
    *,
    now: Optional[datetime] = None,
    spawn_engine: Optional["SpawnEngine"] = None,
    max_bases: Optional[int] = None,
) -> PlayerBase:
    from gamebase.game.spawn import SpawnEngine, SpawnRequest, consume_reservation, ensure_not_held

    now = now or now_utc()
    _validate_create(req)
    cap = max_bases if max_bases is not None else max_bases_allowed(req.subscriber)

    base_id = str(uuid.uuid4())
    try:
        template = require_template(db, req.base_type, 1)

        # Spawn selection commits its own hold, so it runs before any of our writes
        spawn_location_id = req.spawn_location_id
        if req.x is None and spawn_location_id is None:
            engine = spawn_engine or SpawnEngine()
            picked = engine.select_spawn(db, SpawnRequest(player_id=req.player_id), now=now)
            spawn_location_id = picked.reservation.spawn_location_id

        _take_base_slot(db, req.player_id, cap, now)

        if req.x is not None:
            x, y = int(req.x), int(req.y)
            ensure_not_held(db, req.player_id, x, y, now)
        else:
            x, y = consume_reservation(db, req.player_id, spawn_location_id, now)

        # Claim first, then insert: both land in the same commit
        claim_coordinate(db, x=x, y=y, base_id=base_id, now=now)

        build_seconds = int(template.build_time_seconds or 0)
        base = PlayerBase(
            id=base_id,
            player_id=req.player_id,
            alliance_id=req.alliance_id,
            base_type=req.base_type,
            base_name=req.base_name.strip(),
            level=1,
            x=x,
            y=y,
            map_section_id=map_section_id(x, y),
            coordinate_hash=coordinate_hash(x, y),
            status=BUILDING if build_seconds > 0 else ACTIVE,
            defense=template.defense,
            storage=template.storage,
            production=template.production,
            created_at=now,
            last_active_at=now,
            build_completion_time=now + timedelta(seconds=build_seconds) if build_seconds > 0 else None,
            version=1,
        )
        db.add(base)

        commit_or_conflict(
            db,
            "COORDINATES_OCCUPIED",
            "Destination coordinates are occupied",
            coordinates={"x": x, "y": y},
        )
    except GameError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        raise persistence_error(db, exc) from exc

    db.refresh(base)
    logger.info(
        f"Base created player={req.player_id} base={base.id} type={base.base_type} "
        f"at {base.x},{base.y} status={base.status}"
    )
    return base


def destroy_base(
    db: Session,
    player_id: str,
    base_id: str,
    *,
    now: Optional[datetime] = None,
) -> PlayerBase:
    """Retire a base (combat resolution and admin tooling call this)."""
    from gamebase.game.upgrades import cancel_active_upgrade

    now = now or now_utc()
    try:
        base = load_base(db, player_id, base_id)
        if base.status == DESTROYED:
            raise InvalidStateError(
                "Base is already destroyed",
                "INVALID_BASE_STATUS",
                base_id=base_id,
                status=base.status,
            )

        _cas_update(db, base, status=DESTROYED, destroyed_at=now, last_active_at=now)
        release_claim(db, x=base.x, y=base.y, base_id=base.id)
        cancel_active_upgrade(db, base, now)
        _return_base_slot(db, player_id, now)

        commit_or_conflict(db, "BASE_CONCURRENT_MODIFICATION", "Base was modified by another request", base_id=base_id)
    except GameError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        raise persistence_error(db, exc) from exc

    db.refresh(base)
    logger.info(f"Base destroyed player={player_id} base={base_id}")
    return base


# ----------------------------
# Queries
# ----------------------------

def get_base(
    db: Session,
    player_id: str,
    base_id: str,
    *,
    now: Optional[datetime] = None,
) -> PlayerBase:
    """Load a base and persist its resolved status when possible."""
    now = now or now_utc()
    try:
        base = load_base(db, player_id, base_id)
        try:
            settle_base(db, base, now)
            db.commit()
        except ConflictError:
            # Another writer got there first; readers still compute effective status
            db.rollback()
            logger.warning(f"Settle skipped for base {base_id}: concurrent modification")
            base = load_base(db, player_id, base_id)
    except SQLAlchemyError as exc:
        raise persistence_error(db, exc) from exc
    return base


def list_bases(
    db: Session,
    player_id: str,
    *,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    now: Optional[datetime] = None,
) -> list[PlayerBase]:
    """
    A player's bases, oldest first, optionally filtered by effective status.

    status "all" or None returns everything.
    """
    now = now or now_utc()
    if status not in (None, "all") and status not in BASE_STATUSES:
        raise InvalidInputError("Unknown status filter", "VALIDATION_ERROR", status=status)

    bases = db.execute(
        select(PlayerBase)
        .where(PlayerBase.player_id == player_id)
        .order_by(PlayerBase.created_at.asc(), PlayerBase.id.asc())
        .execution_options(populate_existing=True)
    ).scalars().all()

    if status not in (None, "all"):
        bases = [b for b in bases if effective_status(b, now) == status]

    limit = max(1, min(int(limit), 100))
    offset = max(0, int(offset))
    return bases[offset:offset + limit]


def player_summary(
    db: Session,
    player_id: str,
    *,
    subscriber: bool = False,
    now: Optional[datetime] = None,
) -> dict:
    now = now or now_utc()
    bases = db.execute(select(PlayerBase).where(PlayerBase.player_id == player_id)).scalars().all()

    counts = {s: 0 for s in BASE_STATUSES}
    for b in bases:
        counts[effective_status(b, now)] += 1

    live = len(bases) - counts[DESTROYED]
    allowed = max_bases_allowed(subscriber)
    return {
        "total_bases": len(bases),
        "active_bases": counts[ACTIVE],
        "building_bases": counts[BUILDING],
        "moving_bases": counts[MOVING],
        "destroyed_bases": counts[DESTROYED],
        "max_bases_allowed": allowed,
        "can_create_more": live < allowed,
    }
