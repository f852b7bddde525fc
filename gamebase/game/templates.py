# gamebase/game/templates.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from gamebase.database import insert_if_absent
from gamebase.errors import NotFoundError
from gamebase.models.base_template import BaseTemplate


BASE_TYPES: tuple[str, ...] = (
    "command_center",
    "outpost",
    "fortress",
    "mining_station",
    "research_lab",
)

MAX_LEVEL = 10


# ----------------------------
# Level 1 seed data
# ----------------------------

@dataclass(frozen=True)
class TemplateSeed:
    gold: int
    food: int
    materials: int
    player_level: int
    health: int
    defense: int
    production: int
    storage: int
    build_time_s: int


LEVEL_ONE: dict[str, TemplateSeed] = {
    #                                 gold  food  mat  plvl  health  def  prod  storage  time
    "command_center": TemplateSeed(1000,  500, 200,    1,   1000, 100,   50,   1000,  300),
    "outpost":        TemplateSeed( 500,  250, 100,    1,    500,  50,   25,    500,  180),
    "fortress":       TemplateSeed(3000, 1500, 800,    3,   2000, 300,    0,    800, 1200),  # pure defense
    "mining_station": TemplateSeed(1500,  800, 400,    2,    800,  75,  100,   1200,  450),
    "research_lab":   TemplateSeed(2500, 1200, 600,    3,    600,  60,    0,    600,  900),  # research focus
}


def template_id(base_type: str, level: int) -> str:
    return f"{base_type}-level-{level}"


def _scaled_stat(base: int, level: int) -> int:
    # +50% of the level 1 value per level: L1=1x, L2=1.5x, L3=2x ...
    return base * (level + 1) // 2


def template_row(base_type: str, level: int) -> dict:
    """
    Column values for one (base_type, level) template.

    Costs and build time grow linearly with level, stats by half the
    level 1 value per level, player level requirement by one per level.
    """
    seed = LEVEL_ONE[base_type]
    return {
        "template_id": template_id(base_type, level),
        "base_type": base_type,
        "level": level,
        "required_player_level": seed.player_level + (level - 1),
        "cost_gold": seed.gold * level,
        "cost_food": seed.food * level,
        "cost_materials": seed.materials * level,
        "health": _scaled_stat(seed.health, level),
        "defense": _scaled_stat(seed.defense, level),
        "storage": _scaled_stat(seed.storage, level),
        "production": _scaled_stat(seed.production, level),
        "build_time_seconds": seed.build_time_s * level,
    }


def all_template_rows() -> list[dict]:
    return [
        template_row(base_type, level)
        for base_type in BASE_TYPES
        for level in range(1, MAX_LEVEL + 1)
    ]


def seed_templates(db: Session) -> int:
    """Idempotent seed: existing rows are left untouched. Returns rows inserted."""
    inserted = 0
    for row in all_template_rows():
        if insert_if_absent(db, BaseTemplate, row):
            inserted += 1
    db.commit()
    return inserted


# ----------------------------
# Lookup
# ----------------------------

def get_template(db: Session, base_type: str, level: int) -> Optional[BaseTemplate]:
    return db.get(BaseTemplate, template_id(base_type, level))


def require_template(
    db: Session,
    base_type: str,
    level: int,
    *,
    code: str = "TEMPLATE_NOT_FOUND",
) -> BaseTemplate:
    tpl = get_template(db, base_type, level)
    if tpl is None:
        raise NotFoundError(
            f"No template found for {base_type} level {level}",
            code,
            base_type=base_type,
            level=level,
        )
    return tpl


def stat_delta(current: Optional[BaseTemplate], nxt: BaseTemplate) -> dict[str, int]:
    """Stat increase going from ``current`` to ``nxt`` (full stats if current is unknown)."""
    if current is None:
        return {"defense": nxt.defense, "storage": nxt.storage, "production": nxt.production}
    return {
        "defense": nxt.defense - current.defense,
        "storage": nxt.storage - current.storage,
        "production": nxt.production - current.production,
    }
