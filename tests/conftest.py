from __future__ import annotations

import os
import random
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Generator

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

# The app engine is built at import time; keep it off the project data dir.
os.environ.setdefault("DATABASE_URL", "sqlite://")

from gamebase.database import Base, make_engine  # noqa: E402
from gamebase.game.lifecycle import CreateBaseRequest, create_base  # noqa: E402
from gamebase.game.spawn import SpawnEngine  # noqa: E402
from gamebase.game.templates import seed_templates  # noqa: E402
from gamebase.models.base_template import BaseTemplate  # noqa: F401, E402
from gamebase.models.base_upgrade import BaseUpgrade  # noqa: F401, E402
from gamebase.models.coordinate_claim import CoordinateClaim  # noqa: F401, E402
from gamebase.models.player_base import PlayerBase  # noqa: E402
from gamebase.models.player_base_counter import PlayerBaseCounter  # noqa: F401, E402
from gamebase.models.spawn_reservation import SpawnReservation  # noqa: F401, E402
from gamebase.models.upgrade_slot import UpgradeSlot  # noqa: F401, E402


# Fixed clock for the core; the HTTP layer uses real time.
T0 = datetime(2026, 3, 1, 12, 0, 0)


class RecordingGoldLedger:
    """Keeps gold charges in memory so tests can assert on them."""

    def __init__(self) -> None:
        self.charges: list[dict] = []

    def charge(self, player_id: str, amount: int, *, reason: str, reference: str) -> None:
        self.charges.append(
            {"player_id": player_id, "amount": int(amount), "reason": reason, "reference": reference}
        )


@pytest.fixture()
def engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """File-backed SQLite per test so threads can share it."""
    eng = make_engine(f"sqlite:///{(tmp_path / 'test.db').as_posix()}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker:
    factory = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False)
    db = factory()
    try:
        seed_templates(db)
    finally:
        db.close()
    return factory


@pytest.fixture()
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def ledger() -> RecordingGoldLedger:
    return RecordingGoldLedger()


@pytest.fixture()
def spawn_engine() -> SpawnEngine:
    return SpawnEngine(rng=random.Random(1234))


@pytest.fixture()
def make_base(db: Session) -> Callable[..., PlayerBase]:
    """
    Create a base through the real create path.

    ``ready=True`` back-dates creation so the build has finished at T0.
    """

    def _make(
        player_id: str = "p1",
        *,
        x: int = 0,
        y: int = 0,
        base_type: str = "outpost",
        name: str = "Home",
        ready: bool = True,
        now: datetime = T0,
        **kwargs,
    ) -> PlayerBase:
        at = now - timedelta(days=1) if ready else now
        return create_base(
            db,
            CreateBaseRequest(player_id=player_id, base_type=base_type, base_name=name, x=x, y=y, **kwargs),
            now=at,
        )

    return _make
