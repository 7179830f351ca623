"""
Session-scoped trade store.

A `TradeStore` holds what one signed-in user works with: their trades,
the hashtags they have used and the symbols they trade.  Its lifecycle
is explicit.  `load(user_id)` starts a session, `persist()` saves the
cached state, `clear()` ends the session.  Trade mutations are written
through to the repository immediately.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence

from ..journal.models import Trade
from ..journal.validation import parse_side
from ..utils.persistence import load_json, save_json
from .repository import StorageError, TradeRepository


logger = logging.getLogger(__name__)

# Fields an edit may touch; anything else is bookkeeping.
EDITABLE_FIELDS = {
    "pair", "side", "entry", "exit", "lot_size", "entry_date", "exit_date",
    "stop_loss", "take_profit", "duration_minutes", "commission", "notes",
    "hashtags", "account", "market_session", "rating",
}


class SessionNotLoadedError(RuntimeError):
    """An operation needs a user session but `load()` was not called."""


class TradeStore:
    """In-memory journal state for one user, backed by a repository.

    Parameters
    ----------
    repository : TradeRepository
        Where trades are persisted.
    session_path : callable or str, optional
        Path of the session snapshot, or a callable mapping a user id to
        one.  Without it, `persist()` only keeps state in memory.
    default_hashtags : sequence of str
        Known hashtags for a user without a saved session.
    """

    def __init__(
        self,
        repository: TradeRepository,
        session_path=None,
        default_hashtags: Sequence[str] = (),
    ) -> None:
        self.repository = repository
        self._session_path = session_path
        self.default_hashtags = list(default_hashtags)
        self.user_id: Optional[str] = None
        self.trades: List[Trade] = []
        self.hashtags: List[str] = []
        self.symbols: List[str] = []

    # ---------- lifecycle ----------
    def _snapshot_path(self) -> Optional[str]:
        if self._session_path is None or self.user_id is None:
            return None
        if callable(self._session_path):
            return self._session_path(self.user_id)
        return str(self._session_path)

    def load(self, user_id: str) -> "TradeStore":
        """Start a session: fetch the user's trades and saved state."""
        self.clear()
        self.user_id = user_id
        self.trades = self.repository.list_for_user(user_id)
        snapshot = None
        path = self._snapshot_path()
        if path:
            try:
                snapshot = load_json(path)
            except (OSError, ValueError) as exc:
                logger.warning("Ignoring unreadable session snapshot %s: %s", path, exc)
        snapshot = snapshot or {}
        self.hashtags = []
        self.register_hashtags(snapshot.get('hashtags') or self.default_hashtags)
        self.symbols = list(snapshot.get('symbols') or [])
        for trade in self.trades:
            self.register_hashtags(trade.hashtags)
            self._register_symbol(trade.pair)
        logger.info("Loaded %d trade(s) for user %s", len(self.trades), user_id)
        return self

    def persist(self) -> None:
        """Save the session state (known hashtags and symbols)."""
        self._require_session()
        path = self._snapshot_path()
        if not path:
            return
        try:
            save_json(path, {
                'user_id': self.user_id,
                'hashtags': self.hashtags,
                'symbols': self.symbols,
                'saved_at': datetime.now().replace(microsecond=0).isoformat(),
            })
        except OSError as exc:
            raise StorageError(f"Cannot save session {path}: {exc}") from exc

    def clear(self) -> None:
        """End the session and drop all cached state."""
        self.user_id = None
        self.trades = []
        self.hashtags = []
        self.symbols = []

    def _require_session(self) -> str:
        if self.user_id is None:
            raise SessionNotLoadedError("No user session loaded; call load(user_id) first")
        return self.user_id

    # ---------- tags & symbols ----------
    def register_hashtags(self, tags: Iterable[str]) -> List[str]:
        """Add unseen tags to the known set; returns the ones that were new."""
        known = {t.lower() for t in self.hashtags}
        added: List[str] = []
        for tag in tags:
            cleaned = (tag or "").strip().lstrip("#")
            if cleaned and cleaned.lower() not in known:
                self.hashtags.append(cleaned)
                known.add(cleaned.lower())
                added.append(cleaned)
        return added

    def _register_symbol(self, symbol: str) -> None:
        if symbol and symbol not in self.symbols:
            self.symbols.append(symbol)

    # ---------- trades ----------
    def is_duplicate(self, trade: Trade) -> bool:
        key = trade.duplicate_key()
        return any(t.duplicate_key() == key for t in self.trades)

    def add_trade(self, trade: Trade) -> Trade:
        """Store a manually entered or imported trade."""
        return self.add_trades([trade])[0]

    def add_trades(self, trades: Sequence[Trade]) -> List[Trade]:
        """Store several trades with a single repository call."""
        user_id = self._require_session()
        for trade in trades:
            trade.assign_identity(user_id)
        stored = self.repository.add_many(trades)
        for trade in stored:
            self.trades.append(trade)
            self.register_hashtags(trade.hashtags)
            self._register_symbol(trade.pair)
        self.trades.sort(key=lambda t: t.entry_date)
        return stored

    def get_trade(self, trade_id: str) -> Optional[Trade]:
        for trade in self.trades:
            if trade.id == trade_id:
                return trade
        return None

    def update_trade(self, trade_id: str, **changes) -> Trade:
        """Apply an explicit edit and recompute the trade's P/L.

        The edit is made on a copy; the session only sees it once the
        repository has stored it.

        Raises
        ------
        KeyError
            If the trade is not part of the session.
        ValueError
            If a field name is not editable or the side is not a buy/sell.
        StorageError
            If the repository rejects the update.
        """
        self._require_session()
        current = self.get_trade(trade_id)
        if current is None:
            raise KeyError(trade_id)
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        if "side" in changes:
            changes["side"] = parse_side(changes["side"])

        trade = replace(current, hashtags=list(current.hashtags))
        for name, value in changes.items():
            setattr(trade, name, value)
        trade.recalculate()
        trade.updated_at = datetime.now().replace(microsecond=0)
        self.repository.update(trade)

        self.trades = [trade if t.id == trade_id else t for t in self.trades]
        self.trades.sort(key=lambda t: t.entry_date)
        self.register_hashtags(trade.hashtags)
        self._register_symbol(trade.pair)
        return trade

    def delete_trade(self, trade_id: str, is_admin: bool = False) -> bool:
        """Delete a trade owned by the session user, or any trade as admin.

        Raises
        ------
        PermissionError
            If a non-admin tries to delete another user's trade.
        """
        user_id = self._require_session()
        trade = self.get_trade(trade_id) or self.repository.get(trade_id)
        if trade is None:
            return False
        if trade.user_id != user_id and not is_admin:
            raise PermissionError(f"Trade {trade_id} belongs to another user")
        deleted = self.repository.delete(trade_id)
        self.trades = [t for t in self.trades if t.id != trade_id]
        if deleted:
            logger.info("Deleted trade %s", trade_id)
        return deleted

    def find_trades(
        self,
        symbol: Optional[str] = None,
        side: Optional[str] = None,
        hashtag: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        account: Optional[str] = None,
    ) -> List[Trade]:
        """Filter the session's trades; all given criteria must match."""
        self._require_session()
        tag = hashtag.lstrip("#").lower() if hashtag else None
        out: List[Trade] = []
        for trade in self.trades:
            if symbol and symbol.upper() not in trade.pair.upper():
                continue
            if side and trade.side.lower() != side.lower():
                continue
            if tag and tag not in {h.lstrip("#").lower() for h in trade.hashtags}:
                continue
            if start and trade.date < start:
                continue
            if account and (trade.account or "").lower() != account.lower():
                continue
            if end and trade.date > end:
                continue
            out.append(trade)
        return out

    def trades_by_id(self) -> Dict[str, Trade]:
        return {t.id: t for t in self.trades}
