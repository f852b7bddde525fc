# gamebase/models/coordinate_claim.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from gamebase.database import Base


class CoordinateClaim(Base):
    __tablename__ = "coordinate_claims"

    # "x,y"; at most one live claim per coordinate
    coordinate_hash: Mapped[str] = mapped_column(String(32), primary_key=True)
    map_section_id: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    x: Mapped[int] = mapped_column(Integer, nullable=False)
    y: Mapped[int] = mapped_column(Integer, nullable=False)

    base_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)

    # occupied: base sits here; inbound: base is moving here
    kind: Mapped[str] = mapped_column(String(16), default="occupied", nullable=False)

    claimed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    # Inbound claims expire into "occupied" at arrival
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
