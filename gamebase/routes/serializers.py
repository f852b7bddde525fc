# gamebase/routes/serializers.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from gamebase.game.lifecycle import effective_status
from gamebase.game.upgrades import effective_upgrade_status
from gamebase.models.base_upgrade import BaseUpgrade
from gamebase.models.player_base import PlayerBase
from gamebase.models.spawn_reservation import SpawnReservation


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def base_out(base: PlayerBase, now: datetime) -> dict:
    return {
        "base_id": base.id,
        "player_id": base.player_id,
        "alliance_id": base.alliance_id,
        "base_type": base.base_type,
        "base_name": base.base_name,
        "level": int(base.level),
        "coordinates": {"x": int(base.x), "y": int(base.y)},
        "map_section_id": base.map_section_id,
        # Reads always report the time-resolved status
        "status": effective_status(base, now),
        "stats": {
            "defense": int(base.defense),
            "storage": int(base.storage),
            "production": int(base.production),
        },
        "created_at": _iso(base.created_at),
        "last_active_at": _iso(base.last_active_at),
        "build_completion_time": _iso(base.build_completion_time),
        "last_moved_at": _iso(base.last_moved_at),
        "arrival_time": _iso(base.arrival_time),
        "destroyed_at": _iso(base.destroyed_at),
    }


def upgrade_out(upgrade: BaseUpgrade, now: datetime) -> dict:
    remaining = 0
    if upgrade.completion_time is not None:
        remaining = max(0, int((upgrade.completion_time - now).total_seconds()))
    status = effective_upgrade_status(upgrade, now)
    return {
        "upgrade_id": upgrade.id,
        "base_id": upgrade.base_id,
        "upgrade_type": upgrade.upgrade_type,
        "from_level": int(upgrade.from_level),
        "to_level": int(upgrade.to_level),
        "status": status,
        "cost": {
            "gold": int(upgrade.cost_gold),
            "food": int(upgrade.cost_food),
            "materials": int(upgrade.cost_materials),
        },
        "time_seconds": int(upgrade.time_seconds),
        "gold_cost": upgrade.gold_cost,
        "started_at": _iso(upgrade.started_at),
        "completion_time": _iso(upgrade.completion_time),
        "completed_at": _iso(upgrade.completed_at),
        "time_remaining_seconds": remaining if status == "in_progress" else 0,
    }


def reservation_out(res: SpawnReservation) -> dict:
    return {
        "spawn_location_id": res.spawn_location_id,
        "region": res.region,
        "coordinates": {"x": int(res.x), "y": int(res.y)},
        "reserved_by": res.reserved_by,
        "reserved_at": _iso(res.reserved_at),
        "expires_at": _iso(res.expires_at),
    }
