# gamebase/game/ledger.py
from __future__ import annotations

import logging
from typing import Protocol

from gamebase.errors import InternalError

logger = logging.getLogger(__name__)


class GoldLedger(Protocol):
    """Player currency service. Balances live outside this service."""

    def charge(self, player_id: str, amount: int, *, reason: str, reference: str) -> None:
        ...


class LoggingGoldLedger:
    """
    Default ledger: records the charge in the log only.

    Deployments wire a client for the real resource service here.
    """

    def charge(self, player_id: str, amount: int, *, reason: str, reference: str) -> None:
        logger.info(f"Gold charge player={player_id} amount={amount} reason={reason} ref={reference}")


def charge_gold(ledger: GoldLedger, player_id: str, amount: int, *, reason: str, reference: str) -> None:
    try:
        ledger.charge(player_id, amount, reason=reason, reference=reference)
    except Exception as exc:  # noqa: BLE001
        logger.error(f"Gold charge failed player={player_id} amount={amount} ref={reference}: {exc}")
        raise InternalError(
            "Failed to charge gold",
            "LEDGER_ERROR",
            player_id=player_id,
            amount=amount,
            reference=reference,
        ) from exc
