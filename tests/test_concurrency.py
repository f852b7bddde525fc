from __future__ import annotations

import threading
from collections import Counter
from typing import Any, Callable

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from gamebase.errors import GameError
from gamebase.game.lifecycle import CreateBaseRequest, create_base, get_base
from gamebase.game.movement import MoveBaseRequest, move_base
from gamebase.game.spawn import reserve_location
from gamebase.game.upgrades import IN_PROGRESS, StartUpgradeRequest, start_upgrade
from gamebase.models.base_upgrade import BaseUpgrade
from gamebase.models.player_base import PlayerBase
from gamebase.models.player_base_counter import PlayerBaseCounter

from conftest import T0


UNFINISHED = object()


def race(factory: sessionmaker, calls: list[Callable[[Session], Any]]) -> list[Any]:
    """Run each call in its own thread and session, released together."""
    barrier = threading.Barrier(len(calls))
    results: list[Any] = [UNFINISHED] * len(calls)

    def worker(i: int, fn: Callable[[Session], Any]) -> None:
        db = factory()
        try:
            barrier.wait()
            results[i] = fn(db)
        except Exception as exc:  # noqa: BLE001
            results[i] = exc
        finally:
            db.close()

    threads = [threading.Thread(target=worker, args=(i, fn)) for i, fn in enumerate(calls)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    assert not [t for t in threads if t.is_alive()], "worker threads still running after 60s"
    return results


def outcome(result: Any) -> str:
    if result is UNFINISHED:
        return "timeout"
    if isinstance(result, GameError):
        return result.code
    if isinstance(result, Exception):
        return f"error:{type(result).__name__}"
    return "ok"


def outcomes(results: list[Any]) -> Counter:
    return Counter(outcome(r) for r in results)


def test_concurrent_upgrades_leave_one_in_progress(db, session_factory, make_base, ledger):
    base = make_base()
    base_id = base.id
    get_base(db, "p1", base_id, now=T0)  # settle to active up front

    def start(session: Session):
        return start_upgrade(
            session,
            StartUpgradeRequest(player_id="p1", base_id=base_id),
            now=T0,
            ledger=ledger,
        )

    results = race(session_factory, [start] * 6)

    assert outcomes(results) == Counter({"ok": 1, "UPGRADE_IN_PROGRESS": 5})
    in_progress = db.execute(
        select(func.count(BaseUpgrade.id)).where(BaseUpgrade.base_id == base_id, BaseUpgrade.status == IN_PROGRESS)
    ).scalar_one()
    assert in_progress == 1


def test_concurrent_creates_respect_the_base_limit(db, session_factory):
    def create_at(x: int):
        def _create(session: Session):
            return create_base(
                session,
                CreateBaseRequest(player_id="p1", base_type="outpost", base_name=f"B{x}", x=x, y=0),
                now=T0,
            )

        return _create

    results = race(session_factory, [create_at(i * 10) for i in range(6)])

    assert outcomes(results) == Counter({"ok": 5, "BASE_LIMIT_REACHED": 1})
    assert db.execute(select(func.count(PlayerBase.id)).where(PlayerBase.player_id == "p1")).scalar_one() == 5
    assert db.get(PlayerBaseCounter, "p1").base_count == 5


def test_concurrent_creates_on_one_coordinate(db, session_factory):
    def create_for(player_id: str):
        def _create(session: Session):
            return create_base(
                session,
                CreateBaseRequest(player_id=player_id, base_type="outpost", base_name="Here", x=42, y=42),
                now=T0,
            )

        return _create

    results = race(session_factory, [create_for(f"p{i}") for i in range(4)])

    assert outcomes(results) == Counter({"ok": 1, "COORDINATES_OCCUPIED": 3})
    assert db.execute(
        select(func.count(PlayerBase.id)).where(PlayerBase.coordinate_hash == "42,42")
    ).scalar_one() == 1


def test_concurrent_moves_to_one_coordinate(db, session_factory, make_base):
    a = make_base("p1", x=0, y=0)
    b = make_base("p2", x=20, y=0)

    def move(base: PlayerBase):
        player_id, base_id = base.player_id, base.id

        def _move(session: Session):
            return move_base(
                session,
                MoveBaseRequest(player_id=player_id, base_id=base_id, x=10, y=10),
                now=T0,
            )

        return _move

    results = race(session_factory, [move(a), move(b)])

    assert outcomes(results) == Counter({"ok": 1, "COORDINATES_OCCUPIED": 1})
    assert db.execute(
        select(func.count(PlayerBase.id)).where(PlayerBase.coordinate_hash == "10,10")
    ).scalar_one() == 1


def test_concurrent_spawn_holds_on_one_coordinate(session_factory):
    def hold(player_id: str):
        def _hold(session: Session):
            res = reserve_location(session, player_id=player_id, region="center", x=1, y=1, now=T0)
            return None if res is None else res.reserved_by

        return _hold

    results = race(session_factory, [hold(f"p{i}") for i in range(4)])

    assert outcomes(results) == Counter({"ok": 4})
    winners = [r for r in results if r is not None]
    assert len(winners) == 1


def test_race_reports_crashed_and_stuck_workers(session_factory):
    def crash(session: Session):
        raise RuntimeError("lost connection")

    assert outcomes(race(session_factory, [crash, lambda session: 1])) == Counter(
        {"error:RuntimeError": 1, "ok": 1}
    )
    assert outcome(UNFINISHED) == "timeout"
