# gamebase/game/claims.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from gamebase.database import insert_if_absent
from gamebase.errors import ConflictError
from gamebase.game.mapgrid import coordinate_hash, map_section_id
from gamebase.models.coordinate_claim import CoordinateClaim

logger = logging.getLogger(__name__)


def get_claim(db: Session, x: int, y: int) -> Optional[CoordinateClaim]:
    return db.execute(
        select(CoordinateClaim).where(CoordinateClaim.coordinate_hash == coordinate_hash(x, y))
    ).scalar_one_or_none()


def claim_coordinate(
    db: Session,
    *,
    x: int,
    y: int,
    base_id: str,
    now: datetime,
    kind: str = "occupied",
    expires_at: Optional[datetime] = None,
) -> None:
    """
    Claim (x, y) for ``base_id`` with a single conditional insert.

    Re-claiming a coordinate the base already holds is a no-op. Any other
    holder means the coordinate is taken: COORDINATES_OCCUPIED.
    """
    created = insert_if_absent(
        db,
        CoordinateClaim,
        {
            "coordinate_hash": coordinate_hash(x, y),
            "map_section_id": map_section_id(x, y),
            "x": x,
            "y": y,
            "base_id": base_id,
            "kind": kind,
            "claimed_at": now,
            "expires_at": expires_at,
        },
    )
    if created:
        return

    holder = get_claim(db, x, y)
    if holder is not None and holder.base_id == base_id:
        return

    logger.warning(f"Coordinate {x},{y} already claimed by {holder.base_id if holder else '?'}")
    raise ConflictError(
        "Destination coordinates are occupied",
        "COORDINATES_OCCUPIED",
        coordinates={"x": x, "y": y},
        occupied_by=holder.base_id if holder else None,
    )


def release_claim(db: Session, *, x: int, y: int, base_id: str) -> bool:
    """Drop the claim on (x, y) only if ``base_id`` still holds it."""
    result = db.execute(
        delete(CoordinateClaim).where(
            CoordinateClaim.coordinate_hash == coordinate_hash(x, y),
            CoordinateClaim.base_id == base_id,
        )
    )
    return result.rowcount == 1


def promote_claim(db: Session, *, x: int, y: int, base_id: str) -> bool:
    """Inbound claim -> occupied once the base has arrived."""
    result = db.execute(
        update(CoordinateClaim)
        .where(
            CoordinateClaim.coordinate_hash == coordinate_hash(x, y),
            CoordinateClaim.base_id == base_id,
            CoordinateClaim.kind == "inbound",
        )
        .values(kind="occupied", expires_at=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def claimed_hashes(db: Session, hashes: Iterable[str]) -> set[str]:
    wanted = list(set(hashes))
    if not wanted:
        return set()
    rows = db.execute(
        select(CoordinateClaim.coordinate_hash).where(CoordinateClaim.coordinate_hash.in_(wanted))
    ).scalars()
    return set(rows)
