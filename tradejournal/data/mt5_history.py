"""
MetaTrader 5 history feed.

This module wraps the `MetaTrader5` Python package to pull closed
positions straight from a running terminal, as an alternative to
exporting a history file by hand.  If the package is not installed
or initialisation fails, the code raises a clear exception.  Users
can skip installing MetaTrader5 when they only import files.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Sequence

from ..config.schema import MT5Config
from ..journal.models import BUY, SELL, Trade
from ..utils.timeutils import minutes_between

# Attempt to import MetaTrader5.  If unavailable, mt5 will be None.
try:
    import MetaTrader5 as mt5  # type: ignore
except ImportError:
    mt5 = None  # Will be checked at runtime


logger = logging.getLogger(__name__)

# Deal constants as defined by the MetaTrader5 package
DEAL_TYPE_BUY = 0
DEAL_TYPE_SELL = 1
DEAL_ENTRY_IN = 0
DEAL_ENTRY_OUT = 1


def _deal_time(deal) -> datetime:
    return datetime.fromtimestamp(deal.time, tz=timezone.utc).replace(tzinfo=None)


def deals_to_trades(deals: Sequence, platform: str = "mt5") -> List[Trade]:
    """Pair entry and exit deals by position id into closed trades.

    Positions closed in several partial deals are merged: exit price is
    the volume-weighted average, fees and profits are summed.  Positions
    without an exit deal (still open) are left out.
    """
    by_position: Dict[int, Dict[str, list]] = defaultdict(lambda: {"in": [], "out": []})
    for deal in deals:
        if deal.type not in (DEAL_TYPE_BUY, DEAL_TYPE_SELL):
            continue  # balance, credit and other non-trading deals
        bucket = "in" if deal.entry == DEAL_ENTRY_IN else "out"
        by_position[deal.position_id][bucket].append(deal)

    trades: List[Trade] = []
    for position_id, legs in by_position.items():
        if not legs["in"] or not legs["out"]:
            continue
        opening = legs["in"][0]
        closing = legs["out"]
        out_volume = sum(d.volume for d in closing)
        exit_price = sum(d.price * d.volume for d in closing) / out_volume if out_volume else closing[-1].price
        fees = sum(d.commission + d.swap for d in legs["in"] + closing)
        entry_date = _deal_time(opening)
        exit_date = _deal_time(closing[-1])
        comment = opening.comment or "No comment"
        trade = Trade(
            pair=opening.symbol,
            side=BUY if opening.type == DEAL_TYPE_BUY else SELL,
            entry=float(opening.price),
            exit=float(exit_price),
            lot_size=float(opening.volume),
            entry_date=entry_date,
            exit_date=exit_date,
            duration_minutes=minutes_between(entry_date, exit_date),
            commission=round(abs(fees), 2),
            notes=f"Imported from {platform.upper()}: {comment} (position {position_id})",
            hashtags=["metatrader", platform],
        )
        trade.recalculate()
        trades.append(trade)
    trades.sort(key=lambda t: t.entry_date)
    return trades


class MT5HistoryFeed:
    """Handle connection to MetaTrader 5 and retrieval of closed trades."""

    def __init__(self, config: MT5Config) -> None:
        self.config = config
        self._connected = False

    def connect(self) -> None:
        """Initialise the MetaTrader 5 terminal.

        Raises
        ------
        RuntimeError
            If the MetaTrader5 package is not installed or initialisation fails.
        """
        if mt5 is None:
            raise RuntimeError(
                "MetaTrader5 package is not installed.  Install it with 'pip install MetaTrader5' to sync history."
            )
        if not mt5.initialize(path=self.config.path, login=self.config.login, password=self.config.password, server=self.config.server):
            raise RuntimeError(f"MT5 initialisation failed: {mt5.last_error()}")
        self._connected = True
        logger.info("Connected to MetaTrader 5 account %s", self.config.login)

    def shutdown(self) -> None:
        """Shutdown the MT5 connection if it was opened."""
        if mt5 and self._connected:
            mt5.shutdown()
            self._connected = False

    def fetch_closed_trades(self, start: datetime, end: datetime) -> List[Trade]:
        """Return trades closed between `start` and `end` (UTC)."""
        if not self._connected:
            raise RuntimeError("MT5HistoryFeed is not connected.  Call connect() before requesting history.")
        deals = mt5.history_deals_get(start, end)
        if deals is None:
            raise RuntimeError(f"MT5 history request failed: {mt5.last_error()}")
        trades = deals_to_trades(deals)
        logger.info("Fetched %d closed trade(s) from %d deal(s)", len(trades), len(deals))
        return trades
