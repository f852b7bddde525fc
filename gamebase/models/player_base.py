# gamebase/models/player_base.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Integer, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from gamebase.database import Base


class PlayerBase(Base):
    __tablename__ = "player_bases"
    __table_args__ = (
        # Secondary index used for per-section density and neighbour lookups
        Index("ix_player_bases_section_hash", "map_section_id", "coordinate_hash"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    # Ownership
    player_id: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    alliance_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Core identity
    base_type: Mapped[str] = mapped_column(String(32), nullable=False)
    base_name: Mapped[str] = mapped_column(String(100), nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    # Map position
    x: Mapped[int] = mapped_column(Integer, nullable=False)
    y: Mapped[int] = mapped_column(Integer, nullable=False)
    map_section_id: Mapped[str] = mapped_column(String(32), nullable=False)
    coordinate_hash: Mapped[str] = mapped_column(String(32), index=True, nullable=False)

    # Stored status: active | building | moving | destroyed.
    # Never trusted on its own, see game.lifecycle.effective_status.
    status: Mapped[str] = mapped_column(String(16), index=True, nullable=False)

    # Stats
    defense: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    storage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    production: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    last_active_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    build_completion_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_moved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    arrival_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    destroyed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Compare-and-swap guard: every update is conditional on the version it read
    version: Mapped[int] = mapped_column(Integer, default=1, server_default="1", nullable=False)
