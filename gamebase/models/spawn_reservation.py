# gamebase/models/spawn_reservation.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from gamebase.database import Base


class SpawnReservation(Base):
    __tablename__ = "spawn_reservations"

    # Derived from the coordinate ("spawn-{x}_{y}") so identical picks collide
    spawn_location_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    region: Mapped[str] = mapped_column(String(16), nullable=False)
    x: Mapped[int] = mapped_column(Integer, nullable=False)
    y: Mapped[int] = mapped_column(Integer, nullable=False)
    coordinate_hash: Mapped[str] = mapped_column(String(32), index=True, nullable=False)

    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    reserved_by: Mapped[str | None] = mapped_column(String(50), index=True, nullable=True)
    reserved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, index=True, nullable=True)
