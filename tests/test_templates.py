from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from gamebase.errors import NotFoundError
from gamebase.game.housekeeping import purge_expired
from gamebase.game.spawn import reserve_location
from gamebase.game.templates import (
    BASE_TYPES,
    MAX_LEVEL,
    get_template,
    require_template,
    seed_templates,
    stat_delta,
    template_row,
)
from gamebase.game.upgrades import StartUpgradeRequest, start_upgrade
from gamebase.models.base_template import BaseTemplate
from gamebase.models.base_upgrade import BaseUpgrade
from gamebase.models.spawn_reservation import SpawnReservation

from conftest import T0


def test_level_one_rows_match_catalogue():
    row = template_row("command_center", 1)
    assert row["template_id"] == "command_center-level-1"
    assert (row["cost_gold"], row["cost_food"], row["cost_materials"]) == (1000, 500, 200)
    assert (row["defense"], row["storage"], row["production"]) == (100, 1000, 50)
    assert row["build_time_seconds"] == 300


def test_rows_scale_with_level():
    row = template_row("mining_station", 3)
    assert row["required_player_level"] == 4
    assert row["cost_gold"] == 4500
    assert row["production"] == 200
    assert row["build_time_seconds"] == 1350


def test_seed_is_idempotent(db):
    total = db.execute(select(func.count()).select_from(BaseTemplate)).scalar_one()
    assert total == len(BASE_TYPES) * MAX_LEVEL
    assert seed_templates(db) == 0


def test_lookup_and_missing_template(db):
    assert get_template(db, "outpost", 2).defense == 75
    assert get_template(db, "outpost", MAX_LEVEL + 1) is None

    with pytest.raises(NotFoundError) as exc:
        require_template(db, "outpost", MAX_LEVEL + 1)
    assert exc.value.code == "TEMPLATE_NOT_FOUND"
    assert exc.value.details == {"base_type": "outpost", "level": MAX_LEVEL + 1}


def test_stat_delta(db):
    one = get_template(db, "outpost", 1)
    two = get_template(db, "outpost", 2)
    assert stat_delta(one, two) == {"defense": 25, "storage": 250, "production": 12}
    assert stat_delta(None, two) == {"defense": 75, "storage": 750, "production": 37}


def test_purge_expired_drops_stale_rows_only(db, make_base, ledger):
    reserve_location(db, player_id="p1", region="center", x=1, y=1, now=T0)
    reserve_location(db, player_id="p2", region="center", x=2, y=2, now=T0 + timedelta(minutes=10))

    base = make_base()
    start_upgrade(
        db,
        StartUpgradeRequest(player_id="p1", base_id=base.id, skip_time=True),
        now=T0,
        ledger=ledger,
    )
    running = make_base("p1", x=50, y=50)
    start_upgrade(db, StartUpgradeRequest(player_id="p1", base_id=running.id), now=T0, ledger=ledger)

    out = purge_expired(db, T0 + timedelta(days=8))

    assert out == {"spawn_reservations": 2, "upgrades": 1, "ok": True}
    assert db.execute(select(func.count()).select_from(SpawnReservation)).scalar_one() == 0
    remaining = db.execute(select(BaseUpgrade.base_id)).scalars().all()
    assert remaining == [running.id]

    out = purge_expired(db, T0 + timedelta(minutes=1))
    assert out["spawn_reservations"] == 0
