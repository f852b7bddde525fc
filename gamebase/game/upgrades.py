# gamebase/game/upgrades.py
from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gamebase.config import UPGRADE_RECORD_TTL_DAYS
from gamebase.database import commit_or_conflict, insert_if_absent, persistence_error
from gamebase.errors import ConflictError, GameError, InvalidInputError, InvalidStateError
from gamebase.game.ledger import GoldLedger, LoggingGoldLedger, charge_gold
from gamebase.game.lifecycle import ACTIVE, apply_level_up, effective_status, load_base, settle_base
from gamebase.game.mapgrid import now_utc
from gamebase.game.templates import get_template, require_template, stat_delta
from gamebase.models.base_upgrade import BaseUpgrade
from gamebase.models.player_base import PlayerBase
from gamebase.models.upgrade_slot import UpgradeSlot

logger = logging.getLogger(__name__)

UPGRADE_TYPES: tuple[str, ...] = ("level", "defense", "storage", "production", "specialized")

IN_PROGRESS = "in_progress"
COMPLETED = "completed"
CANCELLED = "cancelled"

# Templates with no build time still take an hour
DEFAULT_UPGRADE_SECONDS = 3600


def instant_gold_cost(build_seconds: int) -> int:
    # 1 gold per minute of upgrade time, minimum 10
    return max(10, int(math.ceil(build_seconds / 60)))


def effective_upgrade_status(upgrade: BaseUpgrade, now: datetime) -> str:
    if upgrade.status == IN_PROGRESS and now >= upgrade.completion_time:
        return COMPLETED
    return upgrade.status


def _ttl_from(at: datetime) -> datetime:
    return at + timedelta(days=UPGRADE_RECORD_TTL_DAYS)


def _load_upgrade(db: Session, upgrade_id: str) -> Optional[BaseUpgrade]:
    return db.execute(
        select(BaseUpgrade)
        .where(BaseUpgrade.id == upgrade_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def _slot_for(db: Session, base_id: str) -> Optional[UpgradeSlot]:
    return db.execute(
        select(UpgradeSlot)
        .where(UpgradeSlot.base_id == base_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def _free_slot(db: Session, base_id: str, upgrade_id: str) -> None:
    db.execute(
        delete(UpgradeSlot)
        .where(UpgradeSlot.base_id == base_id, UpgradeSlot.upgrade_id == upgrade_id)
        .execution_options(synchronize_session=False)
    )


def _require_active(base: PlayerBase, now: datetime) -> None:
    status = effective_status(base, now)
    if status != ACTIVE:
        raise InvalidStateError(
            f"Cannot upgrade base with status: {status}",
            "INVALID_BASE_STATUS",
            base_id=base.id,
            status=status,
        )


def active_upgrade(db: Session, base_id: str) -> Optional[BaseUpgrade]:
    """The upgrade currently holding the base's slot, if any."""
    slot = _slot_for(db, base_id)
    if slot is None:
        return None
    return _load_upgrade(db, slot.upgrade_id)


# ----------------------------
# Start
# ----------------------------

@dataclass
class StartUpgradeRequest:
    player_id: str
    base_id: str
    upgrade_type: str = "level"
    skip_time: bool = False


def start_upgrade(
    db: Session,
    req: StartUpgradeRequest,
    *,
    now: Optional[datetime] = None,
    ledger: Optional[GoldLedger] = None,
) -> BaseUpgrade:
    if req.upgrade_type not in UPGRADE_TYPES:
        raise InvalidInputError(
            "Unknown upgrade type",
            "VALIDATION_ERROR",
            upgrade_type=req.upgrade_type,
            accepted=list(UPGRADE_TYPES),
        )

    now = now or now_utc()
    ledger = ledger or LoggingGoldLedger()

    try:
        base = load_base(db, req.player_id, req.base_id)
        settle_base(db, base, now)
        _require_active(base, now)

        # One builder rule: the slot insert is the only check
        upgrade_id = f"{base.id}-{uuid.uuid4()}"
        if not insert_if_absent(
            db,
            UpgradeSlot,
            {"base_id": base.id, "upgrade_id": upgrade_id, "claimed_at": now},
        ):
            holder = _slot_for(db, base.id)
            raise ConflictError(
                "Base already has an active upgrade",
                "UPGRADE_IN_PROGRESS",
                base_id=base.id,
                active_upgrade=holder.upgrade_id if holder else None,
            )

        # Slot is ours; re-read in case an instant upgrade or destroy landed first
        db.refresh(base)
        _require_active(base, now)

        current_tpl = get_template(db, base.base_type, base.level)
        next_tpl = require_template(
            db,
            base.base_type,
            base.level + 1,
            code="UPGRADE_TEMPLATE_NOT_FOUND",
        )

        seconds = int(next_tpl.build_time_seconds or DEFAULT_UPGRADE_SECONDS)
        upgrade = BaseUpgrade(
            id=upgrade_id,
            player_id=req.player_id,
            base_id=base.id,
            upgrade_type=req.upgrade_type,
            from_level=base.level,
            to_level=base.level + 1,
            status=IN_PROGRESS,
            cost_gold=next_tpl.cost_gold,
            cost_food=next_tpl.cost_food,
            cost_materials=next_tpl.cost_materials,
            time_seconds=seconds,
            started_at=now,
            completion_time=now + timedelta(seconds=seconds),
        )

        if req.skip_time:
            upgrade.gold_cost = instant_gold_cost(seconds)
            upgrade.status = COMPLETED
            upgrade.completion_time = now
            upgrade.completed_at = now
            upgrade.expires_at = _ttl_from(now)
            try:
                apply_level_up(db, base, stat_delta(current_tpl, next_tpl), now)
            except ConflictError as exc:
                # Another upgrade finished on this base while we were working
                raise ConflictError(
                    "Base already has an active upgrade",
                    "UPGRADE_IN_PROGRESS",
                    base_id=base.id,
                ) from exc
            _free_slot(db, base.id, upgrade_id)
        else:
            upgrade.expires_at = _ttl_from(upgrade.completion_time)

        db.add(upgrade)
        commit_or_conflict(
            db,
            "UPGRADE_IN_PROGRESS",
            "Base already has an active upgrade",
            base_id=base.id,
        )
    except GameError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        raise persistence_error(db, exc) from exc

    db.refresh(upgrade)

    if req.skip_time:
        charge_gold(
            ledger,
            req.player_id,
            upgrade.gold_cost,
            reason="instant_upgrade",
            reference=upgrade.id,
        )

    logger.info(
        f"Upgrade {'completed' if req.skip_time else 'started'} player={req.player_id} "
        f"base={req.base_id} {upgrade.from_level}->{upgrade.to_level} type={req.upgrade_type}"
    )
    return upgrade


# ----------------------------
# Completion / cancellation
# ----------------------------

def settle_upgrade(db: Session, base: PlayerBase, now: datetime) -> Optional[BaseUpgrade]:
    """
    Persist a due upgrade: bump the level, mark it completed, free the slot.

    Returns the upgrade that was completed, if any. Does not commit.
    """
    slot = _slot_for(db, base.id)
    if slot is None:
        return None

    upgrade = _load_upgrade(db, slot.upgrade_id)
    if upgrade is None or upgrade.status != IN_PROGRESS:
        # Slot left behind by a finished upgrade
        _free_slot(db, base.id, slot.upgrade_id)
        return None

    if now < upgrade.completion_time:
        return None

    result = db.execute(
        update(BaseUpgrade)
        .where(BaseUpgrade.id == upgrade.id, BaseUpgrade.status == IN_PROGRESS)
        .values(status=COMPLETED, completed_at=upgrade.completion_time)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None

    if base.level == upgrade.from_level:
        current_tpl = get_template(db, base.base_type, upgrade.from_level)
        next_tpl = get_template(db, base.base_type, upgrade.to_level)
        if next_tpl is not None:
            apply_level_up(db, base, stat_delta(current_tpl, next_tpl), now)

    _free_slot(db, base.id, upgrade.id)
    db.refresh(upgrade)
    logger.info(f"Upgrade {upgrade.id} settled, base {base.id} now level {base.level}")
    return upgrade


def cancel_active_upgrade(db: Session, base: PlayerBase, now: datetime) -> Optional[BaseUpgrade]:
    slot = _slot_for(db, base.id)
    if slot is None:
        return None

    db.execute(
        update(BaseUpgrade)
        .where(BaseUpgrade.id == slot.upgrade_id, BaseUpgrade.status == IN_PROGRESS)
        .values(status=CANCELLED, completed_at=now, expires_at=_ttl_from(now))
        .execution_options(synchronize_session=False)
    )
    _free_slot(db, base.id, slot.upgrade_id)
    logger.info(f"Upgrade {slot.upgrade_id} cancelled for base {base.id}")
    return _load_upgrade(db, slot.upgrade_id)


# ----------------------------
# Queries
# ----------------------------

def list_upgrades(db: Session, player_id: str, base_id: str) -> list[BaseUpgrade]:
    load_base(db, player_id, base_id)
    return list(
        db.execute(
            select(BaseUpgrade)
            .where(BaseUpgrade.player_id == player_id, BaseUpgrade.base_id == base_id)
            .order_by(BaseUpgrade.started_at.desc(), BaseUpgrade.id.asc())
            .execution_options(populate_existing=True)
        ).scalars()
    )
