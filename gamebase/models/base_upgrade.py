# gamebase/models/base_upgrade.py
from __future__ import annotations

from datetime import datetime
from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from gamebase.database import Base


class BaseUpgrade(Base):
    __tablename__ = "base_upgrades"

    id: Mapped[str] = mapped_column(String(80), primary_key=True)

    player_id: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    base_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)

    # level | defense | storage | production | specialized
    upgrade_type: Mapped[str] = mapped_column(String(24), nullable=False)
    from_level: Mapped[int] = mapped_column(Integer, nullable=False)
    to_level: Mapped[int] = mapped_column(Integer, nullable=False)

    # in_progress | completed | cancelled
    status: Mapped[str] = mapped_column(String(16), default="in_progress", index=True, nullable=False)

    # Snapshot requirements (helps debugging + deterministic tests)
    cost_gold: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cost_food: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cost_materials: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    time_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    gold_cost: Mapped[int | None] = mapped_column(Integer, nullable=True)

    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    completion_time: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Housekeeping deletes finished rows after this
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, index=True, nullable=True)
