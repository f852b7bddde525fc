from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from gamebase.errors import ConflictError, InvalidInputError, InvalidStateError, NotFoundError
from gamebase.game.claims import get_claim
from gamebase.game.lifecycle import (
    ACTIVE,
    BUILDING,
    DESTROYED,
    CreateBaseRequest,
    create_base,
    destroy_base,
    effective_status,
    get_base,
    list_bases,
    player_summary,
)
from gamebase.game.spawn import SpawnRequest, reserve_location
from gamebase.models.player_base import PlayerBase
from gamebase.models.player_base_counter import PlayerBaseCounter
from gamebase.models.spawn_reservation import SpawnReservation

from conftest import T0


def _counter(db, player_id: str) -> int:
    count = db.execute(
        select(PlayerBaseCounter.base_count).where(PlayerBaseCounter.player_id == player_id)
    ).scalar_one_or_none()
    return count or 0


def test_create_base_starts_building_with_level_one_stats(db):
    base = create_base(
        db,
        CreateBaseRequest(player_id="p1", base_type="outpost", base_name="  North Camp ", x=120, y=-35),
        now=T0,
    )

    assert base.level == 1
    assert base.base_name == "North Camp"
    assert base.status == BUILDING
    assert base.build_completion_time == T0 + timedelta(seconds=180)
    assert (base.defense, base.storage, base.production) == (50, 500, 25)
    assert base.map_section_id == "1,-1"
    assert base.coordinate_hash == "120,-35"
    assert base.version == 1

    claim = get_claim(db, 120, -35)
    assert claim is not None and claim.base_id == base.id
    assert _counter(db, "p1") == 1


def test_effective_status_resolves_build_and_get_base_persists_it(db, make_base):
    base = make_base(ready=False)
    assert effective_status(base, T0 + timedelta(seconds=179)) == BUILDING
    assert effective_status(base, T0 + timedelta(seconds=180)) == ACTIVE

    fresh = get_base(db, "p1", base.id, now=T0 + timedelta(minutes=5))
    assert fresh.status == ACTIVE
    assert fresh.version == 2


@pytest.mark.parametrize(
    "overrides",
    [
        {"base_type": "castle"},
        {"base_name": "   "},
        {"base_name": "x" * 101},
        {"x": 10, "y": None},
        {"x": 2_000_000, "y": 0},
    ],
)
def test_create_base_rejects_bad_input(db, overrides):
    fields = {"player_id": "p1", "base_type": "outpost", "base_name": "Home", "x": 1, "y": 1}
    fields.update(overrides)
    with pytest.raises(InvalidInputError) as exc:
        create_base(db, CreateBaseRequest(**fields), now=T0)
    assert exc.value.code == "VALIDATION_ERROR"
    assert db.execute(select(func.count(PlayerBase.id))).scalar_one() == 0


def test_occupied_coordinate_is_rejected_and_nothing_is_written(db, make_base):
    first = make_base("p1", x=5, y=5)

    with pytest.raises(ConflictError) as exc:
        make_base("p2", x=5, y=5)

    assert exc.value.code == "COORDINATES_OCCUPIED"
    assert exc.value.details["occupied_by"] == first.id
    assert db.execute(select(func.count(PlayerBase.id))).scalar_one() == 1
    # Counter increment rolled back with the failed create
    assert db.execute(
        select(func.count()).select_from(PlayerBaseCounter).where(PlayerBaseCounter.player_id == "p2")
    ).scalar_one() == 0


def test_base_limit_for_free_players_and_subscribers(db, make_base):
    for i in range(5):
        make_base("p1", x=i * 10, y=0)

    with pytest.raises(ConflictError) as exc:
        make_base("p1", x=100, y=0)
    assert exc.value.code == "BASE_LIMIT_REACHED"
    assert exc.value.details["current_count"] == 5
    assert exc.value.details["max_bases"] == 5

    sixth = make_base("p1", x=100, y=0, subscriber=True)
    assert sixth.player_id == "p1"
    assert _counter(db, "p1") == 6


def test_destroy_releases_coordinate_and_limit_slot(db, make_base):
    base = make_base("p1", x=7, y=8)

    destroyed = destroy_base(db, "p1", base.id, now=T0)
    assert destroyed.status == DESTROYED
    assert destroyed.destroyed_at == T0
    assert get_claim(db, 7, 8) is None
    assert _counter(db, "p1") == 0

    # Coordinate is free again
    other = make_base("p2", x=7, y=8)
    assert get_claim(db, 7, 8).base_id == other.id

    with pytest.raises(InvalidStateError) as exc:
        destroy_base(db, "p1", base.id, now=T0)
    assert exc.value.code == "INVALID_BASE_STATUS"


def test_get_base_is_scoped_to_owner(db, make_base):
    base = make_base("p1")
    with pytest.raises(NotFoundError) as exc:
        get_base(db, "p2", base.id, now=T0)
    assert exc.value.code == "BASE_NOT_FOUND"


def test_list_bases_filters_by_effective_status_and_summarises(db, make_base):
    ready = make_base("p1", x=0, y=0, name="A")
    make_base("p1", x=50, y=0, name="B", ready=False)
    gone = make_base("p1", x=90, y=0, name="C")
    destroy_base(db, "p1", gone.id, now=T0)

    assert [b.id for b in list_bases(db, "p1", status=ACTIVE, now=T0)] == [ready.id]
    assert len(list_bases(db, "p1", now=T0)) == 3
    assert len(list_bases(db, "p1", status="all", limit=1, now=T0)) == 1

    with pytest.raises(InvalidInputError):
        list_bases(db, "p1", status="sleeping", now=T0)

    summary = player_summary(db, "p1", now=T0)
    assert summary == {
        "total_bases": 3,
        "active_bases": 1,
        "building_bases": 1,
        "moving_bases": 0,
        "destroyed_bases": 1,
        "max_bases_allowed": 5,
        "can_create_more": True,
    }


def test_create_without_coordinates_uses_spawn_selection(db, spawn_engine):
    base = create_base(
        db,
        CreateBaseRequest(player_id="p1", base_type="command_center", base_name="Capital"),
        now=T0,
        spawn_engine=spawn_engine,
    )

    assert -2000 <= base.x <= 2000 and -2000 <= base.y <= 2000
    assert get_claim(db, base.x, base.y).base_id == base.id
    # The hold was consumed with the create
    assert db.execute(select(func.count()).select_from(SpawnReservation)).scalar_one() == 0


def test_create_with_reserved_spawn_location(db, spawn_engine):
    picked = spawn_engine.select_spawn(db, SpawnRequest(player_id="p1", preferred_region="north"), now=T0)
    sid = picked.reservation.spawn_location_id
    # The reservation row is deleted by the create below
    held = (picked.reservation.x, picked.reservation.y)

    with pytest.raises(ConflictError) as exc:
        create_base(
            db,
            CreateBaseRequest(player_id="p2", base_type="outpost", base_name="Thief", spawn_location_id=sid),
            now=T0,
        )
    assert exc.value.code == "SPAWN_LOCATION_UNAVAILABLE"

    base = create_base(
        db,
        CreateBaseRequest(player_id="p1", base_type="outpost", base_name="Mine", spawn_location_id=sid),
        now=T0 + timedelta(seconds=60),
    )
    assert (base.x, base.y) == held
    assert 0 <= base.y <= 2000


def test_spawn_location_errors(db, spawn_engine):
    with pytest.raises(NotFoundError) as exc:
        create_base(
            db,
            CreateBaseRequest(player_id="p1", base_type="outpost", base_name="Home", spawn_location_id="spawn-1_1"),
            now=T0,
        )
    assert exc.value.code == "SPAWN_LOCATION_NOT_FOUND"

    picked = spawn_engine.select_spawn(db, SpawnRequest(player_id="p1"), now=T0)
    with pytest.raises(ConflictError) as exc:
        create_base(
            db,
            CreateBaseRequest(
                player_id="p1",
                base_type="outpost",
                base_name="Home",
                spawn_location_id=picked.reservation.spawn_location_id,
            ),
            now=T0 + timedelta(seconds=301),
        )
    assert exc.value.code == "SPAWN_LOCATION_UNAVAILABLE"
    assert _counter(db, "p1") == 0


def test_explicit_coordinates_respect_another_players_spawn_hold(db):
    reserve_location(db, player_id="p1", region="center", x=30, y=30, now=T0)

    with pytest.raises(ConflictError) as exc:
        create_base(
            db,
            CreateBaseRequest(player_id="p2", base_type="outpost", base_name="Squat", x=30, y=30),
            now=T0 + timedelta(seconds=60),
        )
    assert exc.value.code == "COORDINATES_OCCUPIED"
    assert _counter(db, "p2") == 0

    # The holder may still build there by coordinate, and others can once the hold lapses
    mine = create_base(
        db,
        CreateBaseRequest(player_id="p1", base_type="outpost", base_name="Mine", x=30, y=30),
        now=T0 + timedelta(seconds=60),
    )
    assert get_claim(db, 30, 30).base_id == mine.id

    reserve_location(db, player_id="p1", region="center", x=31, y=30, now=T0)
    late = create_base(
        db,
        CreateBaseRequest(player_id="p2", base_type="outpost", base_name="Late", x=31, y=30),
        now=T0 + timedelta(seconds=300),
    )
    assert (late.x, late.y) == (31, 30)
