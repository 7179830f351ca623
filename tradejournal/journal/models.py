"""
Trade and import-result models.

These dataclasses represent the objects passed between the importers,
the session store and the repository.  Keeping them in a separate
module improves readability and makes unit testing easier.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from .pnl import calc_profit_loss


BUY = "Buy"
SELL = "Sell"


def normalize_side(value: str) -> Optional[str]:
    """Map a broker/type string to ``Buy`` or ``Sell``.

    Anything containing ``buy`` or equal to ``long`` is a buy; anything
    containing ``sell`` or equal to ``short`` is a sell.  Returns `None`
    when the value names neither (e.g. MetaTrader ``balance`` rows).
    """
    text = (value or "").strip().lower()
    if "buy" in text or text == "long":
        return BUY
    if "sell" in text or text == "short":
        return SELL
    return None


@dataclass
class Trade:
    """Represents a single journal entry.

    `profit_loss` is derived from the prices, lot size, side and
    instrument; call `recalculate()` after changing any of them.
    """

    pair: str
    side: str  # 'Buy' or 'Sell'
    entry: float
    exit: Optional[float]
    lot_size: float
    entry_date: datetime
    exit_date: Optional[datetime] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    profit_loss: float = 0.0
    duration_minutes: Optional[int] = None
    commission: float = 0.0
    notes: str = ""
    hashtags: List[str] = field(default_factory=list)
    account: str = ""
    market_session: Optional[str] = None
    rating: int = 0
    user_id: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def recalculate(self) -> float:
        """Recompute `profit_loss` from the trade's own fields."""
        self.profit_loss = calc_profit_loss(self.entry, self.exit, self.lot_size, self.side, self.pair)
        return self.profit_loss

    @property
    def date(self) -> date:
        return self.entry_date.date()

    @property
    def direction(self) -> str:
        return "long" if normalize_side(self.side) == BUY else "short"

    @property
    def net_profit(self) -> float:
        return round(self.profit_loss - (self.commission or 0.0), 2)

    @property
    def return_percentage(self) -> float:
        """Price move from entry to exit in percent of entry (0 when open)."""
        if not self.entry or self.exit is None:
            return 0.0
        return (self.exit - self.entry) / self.entry * 100

    @property
    def risk_percentage(self) -> float:
        """Distance from entry to stop loss in percent of entry."""
        if not self.entry or self.stop_loss is None:
            return 0.0
        return abs(self.stop_loss - self.entry) / self.entry * 100

    def duplicate_key(self) -> Tuple[str, float, Optional[float], date, str]:
        """Identity used to detect the same trade imported twice."""
        exit_price = round(self.exit, 8) if self.exit is not None else None
        return (self.pair.strip().upper(), round(self.entry, 8), exit_price, self.date, self.direction)

    def assign_identity(self, user_id: str) -> None:
        """Stamp owner, id and timestamps on a trade about to be stored."""
        now = datetime.now().replace(microsecond=0)
        self.user_id = user_id
        if self.id is None:
            self.id = uuid.uuid4().hex
        if self.created_at is None:
            self.created_at = now
        self.updated_at = now

    # ---------- persistence ----------
    def to_record(self) -> Dict[str, Any]:
        """Serialise into the persisted trade shape."""
        return {
            'id': self.id,
            'user_id': self.user_id,
            'symbol': self.pair,
            'entry_price': self.entry,
            'exit_price': self.exit,
            'quantity': self.lot_size,
            'direction': self.direction,
            'entry_date': self.entry_date.isoformat(),
            'exit_date': self.exit_date.isoformat() if self.exit_date else None,
            'profit_loss': self.profit_loss,
            'fees': self.commission,
            'notes': self.notes,
            'tags': list(self.hashtags),
            'stop_loss': self.stop_loss,
            'take_profit': self.take_profit,
            'duration_minutes': self.duration_minutes,
            'market_session': self.market_session,
            'account': self.account,
            'rating': self.rating,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Trade":
        def _dt(value: Optional[str]) -> Optional[datetime]:
            return datetime.fromisoformat(value) if value else None

        return cls(
            id=record.get('id'),
            user_id=record.get('user_id'),
            pair=record['symbol'],
            side=BUY if record.get('direction') == 'long' else SELL,
            entry=float(record['entry_price']),
            exit=float(record['exit_price']) if record.get('exit_price') is not None else None,
            lot_size=float(record['quantity']),
            entry_date=datetime.fromisoformat(record['entry_date']),
            exit_date=_dt(record.get('exit_date')),
            profit_loss=float(record.get('profit_loss') or 0.0),
            commission=float(record.get('fees') or 0.0),
            notes=record.get('notes') or "",
            hashtags=list(record.get('tags') or []),
            stop_loss=record.get('stop_loss'),
            take_profit=record.get('take_profit'),
            duration_minutes=record.get('duration_minutes'),
            market_session=record.get('market_session'),
            account=record.get('account') or "",
            rating=int(record.get('rating') or 0),
            created_at=_dt(record.get('created_at')),
            updated_at=_dt(record.get('updated_at')),
        )


@dataclass
class Ok:
    """An import row that produced a trade."""
    trade: Trade
    line: int = 0


@dataclass
class Skipped:
    """An import row that was dropped, with the reason."""
    reason: str
    line: int = 0


RowResult = Union[Ok, Skipped]


def accepted(results: List[RowResult]) -> List[Trade]:
    """Return the trades of all `Ok` results, in file order."""
    return [r.trade for r in results if isinstance(r, Ok)]


def skipped(results: List[RowResult]) -> List[Skipped]:
    return [r for r in results if isinstance(r, Skipped)]
