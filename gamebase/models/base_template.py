# gamebase/models/base_template.py
from __future__ import annotations

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from gamebase.database import Base


class BaseTemplate(Base):
    __tablename__ = "base_templates"
    __table_args__ = (
        UniqueConstraint("base_type", "level", name="uq_base_templates_type_level"),
    )

    # e.g. "command_center-level-1"
    template_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    base_type: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)

    # Requirements
    required_player_level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    cost_gold: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cost_food: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cost_materials: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Resulting stats (absolute values at this level)
    health: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    defense: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    storage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    production: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    build_time_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
