# gamebase/models/upgrade_slot.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from gamebase.database import Base


class UpgradeSlot(Base):
    """
    One row per base with an in-flight upgrade ("one builder" rule).

    The primary key is the base id, so claiming the slot is a single
    conditional insert and a second concurrent claim cannot succeed.
    """

    __tablename__ = "upgrade_slots"

    base_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    upgrade_id: Mapped[str] = mapped_column(String(80), nullable=False)
    claimed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
