"""
Trade repository.

`TradeRepository` is the one storage interface the journal talks to:
create, read, update and delete trades.  `JsonTradeRepository` keeps
all records in a single JSON document, keyed by trade id.  Keeping
storage behind the interface makes it easy to change the backend
(SQLite, a hosted database) without touching the importers or the
session store.
"""

from __future__ import annotations

import abc
import json
import logging
from typing import Dict, Iterable, List, Optional

from ..journal.models import Trade
from ..utils.persistence import load_json, save_json


logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """The storage backend could not complete a call."""


class TradeRepository(abc.ABC):
    """CRUD operations on stored trades."""

    @abc.abstractmethod
    def add(self, trade: Trade) -> Trade:
        """Store a new trade.  The trade must already carry an id."""

    @abc.abstractmethod
    def add_many(self, trades: Iterable[Trade]) -> List[Trade]:
        """Store several trades in one call."""

    @abc.abstractmethod
    def get(self, trade_id: str) -> Optional[Trade]:
        """Return the trade with `trade_id`, or None."""

    @abc.abstractmethod
    def update(self, trade: Trade) -> Trade:
        """Replace the stored version of `trade`."""

    @abc.abstractmethod
    def delete(self, trade_id: str) -> bool:
        """Remove a trade; returns False when it did not exist."""

    @abc.abstractmethod
    def list_for_user(self, user_id: str) -> List[Trade]:
        """All trades owned by `user_id`, ordered by entry date."""


class JsonTradeRepository(TradeRepository):
    """Trade repository stored as one JSON document on disk.

    Parameters
    ----------
    path : str
        Location of the JSON file.  It is created on the first write.
    """

    def __init__(self, path: str) -> None:
        self.path = path

    # ---------- file access ----------
    def _read(self) -> Dict[str, dict]:
        try:
            document = load_json(self.path)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Cannot read trade store {self.path}: {exc}") from exc
        if document is None:
            return {}
        return {record['id']: record for record in document.get('trades', [])}

    def _write(self, records: Dict[str, dict]) -> None:
        try:
            save_json(self.path, {'trades': list(records.values())})
        except (OSError, TypeError) as exc:
            raise StorageError(f"Cannot write trade store {self.path}: {exc}") from exc

    # ---------- trades ----------
    def add(self, trade: Trade) -> Trade:
        return self.add_many([trade])[0]

    def add_many(self, trades: Iterable[Trade]) -> List[Trade]:
        trades = list(trades)
        records = self._read()
        for trade in trades:
            if trade.id is None:
                raise StorageError("Trade must have an id before it is stored")
            if trade.id in records:
                raise StorageError(f"Trade {trade.id} already exists")
            records[trade.id] = trade.to_record()
        self._write(records)
        logger.debug("Stored %d trade(s) in %s", len(trades), self.path)
        return trades

    def get(self, trade_id: str) -> Optional[Trade]:
        record = self._read().get(trade_id)
        return Trade.from_record(record) if record else None

    def update(self, trade: Trade) -> Trade:
        records = self._read()
        if trade.id not in records:
            raise StorageError(f"Trade {trade.id} does not exist")
        records[trade.id] = trade.to_record()
        self._write(records)
        return trade

    def delete(self, trade_id: str) -> bool:
        records = self._read()
        if records.pop(trade_id, None) is None:
            return False
        self._write(records)
        return True

    def list_for_user(self, user_id: str) -> List[Trade]:
        trades = [Trade.from_record(r) for r in self._read().values() if r.get('user_id') == user_id]
        trades.sort(key=lambda t: (t.entry_date, t.created_at or t.entry_date))
        return trades
