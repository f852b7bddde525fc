# gamebase/game/spawn.py
from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Protocol, Sequence

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gamebase.config import SPAWN_HOLD_SECONDS
from gamebase.database import commit_or_conflict, insert_if_absent, persistence_error
from gamebase.errors import ConflictError, InvalidInputError, NotFoundError
from gamebase.game.claims import claimed_hashes
from gamebase.game.lifecycle import ACTIVE, DESTROYED, effective_status
from gamebase.game.mapgrid import Point, centroid, coordinate_hash, distance, map_section_id, now_utc
from gamebase.models.player_base import PlayerBase
from gamebase.models.spawn_reservation import SpawnReservation

logger = logging.getLogger(__name__)


# ----------------------------
# Tuning
# ----------------------------

REGIONS: tuple[str, ...] = ("center", "north", "south", "east", "west", "random")

BASE_RADIUS = 2000
FRIEND_RADIUS = 500
MAX_FRIENDS = 5
MAX_CANDIDATES = 20

# Score normalisers
DENSITY_CAP = 10          # bases per section at which density scores 0
SAFE_RADIUS = 5000        # distance from the map centre at which safety scores 0
RESOURCE_REACH = 1000     # distance to nearest resource node at which access scores 0
FRIEND_REACH = 1000       # distance to friend centroid at which proximity scores 0

WEIGHTS: dict[str, float] = {
    "density": 0.3,
    "safety": 0.3,
    "resource_access": 0.2,
    "friend_proximity": 0.2,
}


@dataclass(frozen=True)
class Bounds:
    min_x: int
    max_x: int
    min_y: int
    max_y: int

    def contains(self, x: int, y: int) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y


def region_bounds(region: str) -> Bounds:
    r = BASE_RADIUS
    half = BASE_RADIUS // 2
    bounds = {
        "center": Bounds(-half, half, -half, half),
        "north": Bounds(-r, r, 0, r),
        "south": Bounds(-r, r, -r, 0),
        "east": Bounds(0, r, -r, r),
        "west": Bounds(-r, 0, -r, r),
        "random": Bounds(-r, r, -r, r),
    }
    if region not in bounds:
        raise InvalidInputError(
            "Unknown spawn region",
            "VALIDATION_ERROR",
            region=region,
            accepted=list(REGIONS),
        )
    return bounds[region]


def spawn_location_id(x: int, y: int) -> str:
    return f"spawn-{x}_{y}"


# ----------------------------
# Resource nodes (external lookup)
# ----------------------------

class ResourceNodeLookup(Protocol):
    def nearest_distance(self, x: int, y: int) -> float:
        ...


DEFAULT_RESOURCE_NODES: tuple[Point, ...] = (
    Point(800, 0),
    Point(-800, 0),
    Point(0, 800),
    Point(0, -800),
    Point(1400, 1400),
    Point(-1400, 1400),
    Point(1400, -1400),
    Point(-1400, -1400),
)


class StaticResourceNodes:
    """Fixed node list; the world service can be plugged in instead."""

    def __init__(self, nodes: Sequence[Point] = DEFAULT_RESOURCE_NODES) -> None:
        self.nodes = tuple(nodes)

    def nearest_distance(self, x: int, y: int) -> float:
        if not self.nodes:
            return math.inf
        return min(distance(x, y, n.x, n.y) for n in self.nodes)


# ----------------------------
# Requests / results
# ----------------------------

@dataclass
class SpawnRequest:
    player_id: str
    preferred_region: str = "random"
    group_with_friends: bool = True
    friend_ids: list[str] = field(default_factory=list)


@dataclass
class Candidate:
    index: int
    x: int
    y: int
    density: float = 0.0
    safety: float = 0.0
    resource_access: float = 0.0
    friend_proximity: float = 0.0
    score: float = 0.0


@dataclass
class SpawnSelection:
    reservation: SpawnReservation
    candidate: Candidate
    attempts: int
    bounds: Bounds


# ----------------------------
# Reservation store
# ----------------------------

def reserve_location(
    db: Session,
    *,
    player_id: str,
    region: str,
    x: int,
    y: int,
    now: datetime,
    hold_seconds: int = SPAWN_HOLD_SECONDS,
) -> Optional[SpawnReservation]:
    """
    Hold (x, y) for ``player_id``. Commits on success.

    Succeeds only if the slot is new, marked available, or its previous hold
    expired; returns None when somebody else holds it.
    """
    sid = spawn_location_id(x, y)
    expires_at = now + timedelta(seconds=hold_seconds)

    try:
        won = insert_if_absent(
            db,
            SpawnReservation,
            {
                "spawn_location_id": sid,
                "region": region,
                "x": x,
                "y": y,
                "coordinate_hash": coordinate_hash(x, y),
                "is_available": False,
                "reserved_by": player_id,
                "reserved_at": now,
                "expires_at": expires_at,
            },
        )
        if not won:
            result = db.execute(
                update(SpawnReservation)
                .where(
                    SpawnReservation.spawn_location_id == sid,
                    or_(SpawnReservation.is_available.is_(True), SpawnReservation.expires_at <= now),
                )
                .values(
                    region=region,
                    is_available=False,
                    reserved_by=player_id,
                    reserved_at=now,
                    expires_at=expires_at,
                )
                .execution_options(synchronize_session=False)
            )
            won = result.rowcount == 1
    except SQLAlchemyError as exc:
        raise persistence_error(db, exc) from exc

    if not won:
        db.rollback()
        return None

    try:
        commit_or_conflict(db, "SPAWN_LOCATION_UNAVAILABLE", "Spawn location not available", spawn_location_id=sid)
    except ConflictError:
        return None

    return db.execute(
        select(SpawnReservation)
        .where(SpawnReservation.spawn_location_id == sid)
        .execution_options(populate_existing=True)
    ).scalar_one()


def ensure_not_held(db: Session, player_id: str, x: int, y: int, now: datetime) -> None:
    """COORDINATES_OCCUPIED if another player holds a live spawn reservation on (x, y)."""
    hold = db.execute(
        select(SpawnReservation).where(
            SpawnReservation.spawn_location_id == spawn_location_id(x, y),
            SpawnReservation.is_available.is_(False),
            SpawnReservation.expires_at > now,
            SpawnReservation.reserved_by != player_id,
        )
    ).scalar_one_or_none()
    if hold is not None:
        raise ConflictError(
            "Coordinates are held for another player's spawn",
            "COORDINATES_OCCUPIED",
            coordinates={"x": x, "y": y},
            reserved_until=hold.expires_at.isoformat(),
        )


def consume_reservation(db: Session, player_id: str, sid: str, now: datetime) -> tuple[int, int]:
    """
    Use up ``player_id``'s hold on ``sid`` and return its coordinate.

    Single conditional delete; does not commit (create_base commits it with
    the new base).
    """
    res = db.execute(
        select(SpawnReservation)
        .where(SpawnReservation.spawn_location_id == sid)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if res is None:
        raise NotFoundError("Spawn location not found", "SPAWN_LOCATION_NOT_FOUND", spawn_location_id=sid)

    x, y = res.x, res.y
    result = db.execute(
        delete(SpawnReservation)
        .where(
            SpawnReservation.spawn_location_id == sid,
            SpawnReservation.reserved_by == player_id,
            SpawnReservation.is_available.is_(False),
            SpawnReservation.expires_at > now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(
            "Spawn location not available",
            "SPAWN_LOCATION_UNAVAILABLE",
            spawn_location_id=sid,
        )
    return x, y


# ----------------------------
# Selection engine
# ----------------------------

class SpawnEngine:
    """
    Picks a coordinate for a new player's base and holds it.

    Candidates are synthetic: a pool biased towards the friends' centroid
    plus uniform samples in the region, scored on population density,
    distance from the safe centre, resource access and friend proximity.
    The best one that can be reserved wins; ties go to the earlier candidate.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        resource_nodes: Optional[ResourceNodeLookup] = None,
        hold_seconds: int = SPAWN_HOLD_SECONDS,
    ) -> None:
        self.rng = rng or random.Random()
        self.resource_nodes = resource_nodes if resource_nodes is not None else StaticResourceNodes()
        self.hold_seconds = hold_seconds

    def friend_locations(self, db: Session, friend_ids: Sequence[str], now: datetime) -> list[Point]:
        points: list[Point] = []
        for fid in list(friend_ids)[:MAX_FRIENDS]:
            bases = db.execute(
                select(PlayerBase)
                .where(PlayerBase.player_id == fid, PlayerBase.status != DESTROYED)
                .order_by(PlayerBase.created_at.asc(), PlayerBase.id.asc())
            ).scalars().all()
            # One base per friend
            home = next((b for b in bases if effective_status(b, now) == ACTIVE), None)
            if home is not None:
                points.append(Point(home.x, home.y))
        return points

    def generate_candidates(self, bounds: Bounds, friend_centre: Optional[Point]) -> list[Point]:
        points: list[Point] = []

        if friend_centre is not None:
            for _ in range(MAX_CANDIDATES // 2):
                angle = self.rng.random() * 2 * math.pi
                d = self.rng.random() * FRIEND_RADIUS
                x = math.floor(friend_centre.x + math.cos(angle) * d)
                y = math.floor(friend_centre.y + math.sin(angle) * d)
                if bounds.contains(x, y):
                    points.append(Point(x, y))

        while len(points) < MAX_CANDIDATES:
            points.append(
                Point(
                    self.rng.randint(bounds.min_x, bounds.max_x),
                    self.rng.randint(bounds.min_y, bounds.max_y),
                )
            )
        return points

    def _section_density(self, db: Session, points: Sequence[Point]) -> dict[str, int]:
        sections = {map_section_id(p.x, p.y) for p in points}
        if not sections:
            return {}
        rows = db.execute(
            select(PlayerBase.map_section_id, func.count(PlayerBase.id))
            .where(PlayerBase.map_section_id.in_(sections), PlayerBase.status != DESTROYED)
            .group_by(PlayerBase.map_section_id)
        ).all()
        return {section: int(count) for section, count in rows}

    def score_candidates(
        self,
        db: Session,
        points: Sequence[Point],
        friend_centre: Optional[Point],
    ) -> list[Candidate]:
        """Score unique, unclaimed candidates; keeps generation order as ``index``."""
        taken = claimed_hashes(db, (coordinate_hash(p.x, p.y) for p in points))
        density = self._section_density(db, points)

        seen: set[str] = set()
        out: list[Candidate] = []
        for index, p in enumerate(points):
            h = coordinate_hash(p.x, p.y)
            if h in seen or h in taken:
                continue
            seen.add(h)

            c = Candidate(index=index, x=p.x, y=p.y)
            c.density = max(0.0, 1 - density.get(map_section_id(p.x, p.y), 0) / DENSITY_CAP)
            c.safety = max(0.0, 1 - distance(0, 0, p.x, p.y) / SAFE_RADIUS)
            c.resource_access = max(0.0, 1 - self.resource_nodes.nearest_distance(p.x, p.y) / RESOURCE_REACH)
            if friend_centre is not None:
                c.friend_proximity = max(
                    0.0, 1 - distance(friend_centre.x, friend_centre.y, p.x, p.y) / FRIEND_REACH
                )
            c.score = (
                WEIGHTS["density"] * c.density
                + WEIGHTS["safety"] * c.safety
                + WEIGHTS["resource_access"] * c.resource_access
                + WEIGHTS["friend_proximity"] * c.friend_proximity
            )
            out.append(c)
        return out

    @staticmethod
    def rank(candidates: Sequence[Candidate]) -> list[Candidate]:
        # Highest score first; equal scores keep the lowest generated index
        return sorted(candidates, key=lambda c: (-c.score, c.index))

    def select_spawn(
        self,
        db: Session,
        req: SpawnRequest,
        *,
        now: Optional[datetime] = None,
    ) -> SpawnSelection:
        now = now or now_utc()
        bounds = region_bounds(req.preferred_region)

        friends: list[Point] = []
        try:
            if req.group_with_friends and req.friend_ids:
                friends = self.friend_locations(db, req.friend_ids, now)
            friend_centre = centroid(friends) if friends else None

            points = self.generate_candidates(bounds, friend_centre)
            ranked = self.rank(self.score_candidates(db, points, friend_centre))
        except SQLAlchemyError as exc:
            raise persistence_error(db, exc) from exc

        for attempt, cand in enumerate(ranked, start=1):
            reservation = reserve_location(
                db,
                player_id=req.player_id,
                region=req.preferred_region,
                x=cand.x,
                y=cand.y,
                now=now,
                hold_seconds=self.hold_seconds,
            )
            if reservation is not None:
                logger.info(
                    f"Spawn reserved player={req.player_id} at {cand.x},{cand.y} "
                    f"score={cand.score:.3f} attempt={attempt}"
                )
                return SpawnSelection(reservation=reservation, candidate=cand, attempts=attempt, bounds=bounds)
            logger.warning(f"Spawn candidate {cand.x},{cand.y} already held, trying next")

        raise ConflictError(
            "No spawn location could be reserved",
            "SPAWN_UNAVAILABLE",
            region=req.preferred_region,
            attempts=len(ranked),
        )
