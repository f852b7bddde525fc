from __future__ import annotations

import math
import random
from datetime import timedelta

import pytest

from gamebase.errors import ConflictError, InvalidInputError
from gamebase.game.lifecycle import destroy_base
from gamebase.game.mapgrid import Point
from gamebase.game.spawn import (
    Candidate,
    SpawnEngine,
    SpawnRequest,
    StaticResourceNodes,
    region_bounds,
    reserve_location,
    spawn_location_id,
)
from gamebase.models.spawn_reservation import SpawnReservation

from conftest import T0


class FixedCandidates(SpawnEngine):
    """Engine with a hand-picked candidate list."""

    def __init__(self, points, **kwargs):
        super().__init__(**kwargs)
        self.points = list(points)

    def generate_candidates(self, bounds, friend_centre):
        return list(self.points)


@pytest.mark.parametrize("region", ["center", "north", "south", "east", "west", "random"])
def test_selected_spawn_is_inside_region(db, region):
    engine = SpawnEngine(rng=random.Random(7))
    picked = engine.select_spawn(db, SpawnRequest(player_id="p1", preferred_region=region), now=T0)

    res = picked.reservation
    assert region_bounds(region).contains(res.x, res.y)
    assert res.spawn_location_id == spawn_location_id(res.x, res.y)
    assert res.reserved_by == "p1"
    assert res.is_available is False
    assert res.expires_at == T0 + timedelta(seconds=300)
    assert picked.attempts == 1


def test_unknown_region_is_rejected(db, spawn_engine):
    with pytest.raises(InvalidInputError) as exc:
        spawn_engine.select_spawn(db, SpawnRequest(player_id="p1", preferred_region="moon"), now=T0)
    assert exc.value.code == "VALIDATION_ERROR"


def test_reservation_is_exclusive_until_it_expires(db):
    first = reserve_location(db, player_id="p1", region="center", x=3, y=4, now=T0)
    assert first is not None

    assert reserve_location(db, player_id="p2", region="center", x=3, y=4, now=T0 + timedelta(seconds=299)) is None

    taken_over = reserve_location(db, player_id="p2", region="center", x=3, y=4, now=T0 + timedelta(seconds=300))
    assert taken_over is not None
    assert taken_over.reserved_by == "p2"


def test_ranking_prefers_score_then_lowest_index():
    a = Candidate(index=3, x=0, y=0, score=0.5)
    b = Candidate(index=1, x=1, y=1, score=0.5)
    c = Candidate(index=0, x=2, y=2, score=0.4)
    assert [x.index for x in SpawnEngine.rank([a, b, c])] == [1, 3, 0]


def test_scoring_components(db, make_base):
    make_base("p9", x=5, y=5)
    engine = SpawnEngine(resource_nodes=StaticResourceNodes([Point(0, 0)]))

    scored = engine.score_candidates(
        db,
        [Point(5, 6), Point(300, 400), Point(5, 6), Point(5, 5)],
        friend_centre=Point(300, 400),
    )

    # Duplicate dropped, claimed coordinate skipped, generation index kept
    assert [(c.index, c.x, c.y) for c in scored] == [(0, 5, 6), (1, 300, 400)]

    crowded, open_ = scored
    assert crowded.density == pytest.approx(0.9)
    assert open_.density == pytest.approx(1.0)
    assert open_.safety == pytest.approx(0.9)
    assert open_.resource_access == pytest.approx(0.5)
    assert open_.friend_proximity == pytest.approx(1.0)
    assert open_.score == pytest.approx(0.3 * 1.0 + 0.3 * 0.9 + 0.2 * 0.5 + 0.2 * 1.0)


def test_no_friends_means_no_proximity_score(db):
    engine = SpawnEngine()
    (only,) = engine.score_candidates(db, [Point(10, 10)], friend_centre=None)
    assert only.friend_proximity == 0.0


def test_friend_candidates_cluster_around_centroid(db, make_base):
    make_base("f1", x=1400, y=1400)
    make_base("f2", x=1600, y=1600)
    gone = make_base("f3", x=-1900, y=-1900)
    destroy_base(db, "f3", gone.id, now=T0)

    engine = SpawnEngine(rng=random.Random(99))
    friends = engine.friend_locations(db, ["f1", "f2", "f3", "nobody"], T0)
    assert sorted(friends) == [Point(1400, 1400), Point(1600, 1600)]

    centre = Point(1500, 1500)
    points = engine.generate_candidates(region_bounds("random"), centre)
    assert len(points) == 20
    near = [p for p in points if math.dist(p, centre) <= 500 + 2]
    assert len(near) >= 10
    assert all(region_bounds("random").contains(p.x, p.y) for p in points)


def test_falls_through_to_next_candidate_then_gives_up(db):
    reserve_location(db, player_id="other", region="center", x=0, y=0, now=T0)

    # No resource nodes: the map centre scores best on safety alone
    engine = FixedCandidates([Point(0, 0), Point(100, 0)], resource_nodes=StaticResourceNodes([]))
    picked = engine.select_spawn(db, SpawnRequest(player_id="p1", preferred_region="center"), now=T0)
    assert (picked.reservation.x, picked.reservation.y) == (100, 0)
    assert picked.attempts == 2

    with pytest.raises(ConflictError) as exc:
        engine.select_spawn(db, SpawnRequest(player_id="p2", preferred_region="center"), now=T0)
    assert exc.value.code == "SPAWN_UNAVAILABLE"
    assert db.get(SpawnReservation, spawn_location_id(100, 0)).reserved_by == "p1"
