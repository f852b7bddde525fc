# gamebase/game/mapgrid.py
from __future__ import annotations

import math
from datetime import datetime
from typing import NamedTuple

SECTION_SIZE = 100

# Hard map limits for any requested coordinate
COORDINATE_LIMIT = 1_000_000


class Point(NamedTuple):
    x: int
    y: int


def now_utc() -> datetime:
    # Naive UTC datetime (no tzinfo). Works cleanly with SQLite.
    return datetime.utcnow()


def map_section_id(x: int, y: int) -> str:
    # 100x100 sections; floor division keeps negative coordinates in the right cell
    return f"{x // SECTION_SIZE},{y // SECTION_SIZE}"


def coordinate_hash(x: int, y: int) -> str:
    return f"{x},{y}"


def distance(ax: int, ay: int, bx: int, by: int) -> float:
    return math.hypot(bx - ax, by - ay)


def within_limits(x: int, y: int) -> bool:
    return abs(x) <= COORDINATE_LIMIT and abs(y) <= COORDINATE_LIMIT


def centroid(points: list[Point]) -> Point:
    if not points:
        return Point(0, 0)
    n = len(points)
    return Point(sum(p.x for p in points) // n, sum(p.y for p in points) // n)
