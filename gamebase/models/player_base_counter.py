# gamebase/models/player_base_counter.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from gamebase.database import Base


class PlayerBaseCounter(Base):
    __tablename__ = "player_base_counters"

    player_id: Mapped[str] = mapped_column(String(50), primary_key=True)

    # Non-destroyed bases owned by the player. Only ever changed by a
    # conditional UPDATE (increment-with-cap / decrement-above-zero).
    base_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
