"""
Import orchestration.

`TradeImporter` sits between the file parsers and the trade store.  It
reads a file, keeps the rows that produced trades, drops trades that
are already in the journal (or appear twice in the same file) and
writes the rest in fixed-size batches.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from ..journal.models import Skipped, Trade, accepted, skipped
from ..storage.session import TradeStore
from .csv_import import RowValidation, validate_csv, valid_trades
from .metatrader_import import ImportFormatError, parse_export


logger = logging.getLogger(__name__)


class NoTradesFoundError(ImportFormatError):
    """The file was readable but held no importable trade."""

    def __init__(self, message: str, validations: Optional[List["RowValidation"]] = None) -> None:
        super().__init__(message)
        self.validations = validations or []


@dataclass
class ImportSummary:
    """What an import did.

    Attributes
    ----------
    imported : list of Trade
        Trades written to the journal.
    duplicates : list of Trade
        Trades left out because the journal already had them.
    skipped : list of Skipped
        Lenient-import rows that could not be read.
    validations : list of RowValidation
        Strict-import per-row results (empty for lenient imports).
    """
    imported: List[Trade] = field(default_factory=list)
    duplicates: List[Trade] = field(default_factory=list)
    skipped: List[Skipped] = field(default_factory=list)
    validations: List[RowValidation] = field(default_factory=list)

    @property
    def invalid_rows(self) -> List[RowValidation]:
        return [v for v in self.validations if not v.valid]


def _read_text(path: str) -> str:
    raw = Path(path).read_bytes()
    if raw.startswith((b"\xff\xfe", b"\xfe\xff")):
        return raw.decode("utf-16")
    for enc in ("utf-8-sig", "cp1252"):
        try:
            return raw.decode(enc)
        except UnicodeDecodeError:
            continue
    return raw.decode("latin-1")


class TradeImporter:
    """Import trades from files into a loaded `TradeStore`.

    Parameters
    ----------
    store : TradeStore
        Session store with a user loaded.
    batch_size : int
        Maximum number of trades per repository write.
    hashtags : sequence of str
        Tags attached to trades from broker exports.
    account : str
        Account name stamped on imported trades.
    """

    def __init__(
        self,
        store: TradeStore,
        batch_size: int = 50,
        hashtags: Sequence[str] = ("imported",),
        account: str = "",
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.store = store
        self.batch_size = batch_size
        self.hashtags = list(hashtags)
        self.account = account

    def import_trades(self, trades: Sequence[Trade]) -> ImportSummary:
        """Insert trades that are not duplicates, `batch_size` at a time."""
        summary = ImportSummary()
        seen = {t.duplicate_key() for t in self.store.trades}
        fresh: List[Trade] = []
        for trade in trades:
            key = trade.duplicate_key()
            if key in seen:
                summary.duplicates.append(trade)
                continue
            seen.add(key)
            if self.account and not trade.account:
                trade.account = self.account
            fresh.append(trade)

        for start in range(0, len(fresh), self.batch_size):
            batch = fresh[start:start + self.batch_size]
            summary.imported.extend(self.store.add_trades(batch))
            logger.debug("Inserted batch of %d trade(s)", len(batch))

        logger.info(
            "Imported %d trade(s), skipped %d duplicate(s)",
            len(summary.imported), len(summary.duplicates),
        )
        return summary

    def import_content(self, content: str, filename: str, now: Optional[datetime] = None) -> ImportSummary:
        """Lenient import of an export already read into memory.

        Raises
        ------
        UnsupportedFormatError
            If the file type is not supported.
        NoTradesFoundError
            If no row of the file produced a trade.
        """
        results = parse_export(content, filename, self.hashtags, now)
        trades = accepted(results)
        if not trades:
            raise NoTradesFoundError(f"No valid trades found in {Path(filename).name}")
        summary = self.import_trades(trades)
        summary.skipped = skipped(results)
        if summary.skipped:
            logger.info("Ignored %d unreadable row(s) in %s", len(summary.skipped), filename)
        return summary

    def import_file(self, path: str, now: Optional[datetime] = None) -> ImportSummary:
        """Lenient import of a MetaTrader CSV, XML or HTML export."""
        return self.import_content(_read_text(path), path, now)

    def import_strict_csv(self, path: str) -> ImportSummary:
        """Import a template CSV; rows with validation errors are left out.

        Raises
        ------
        NoTradesFoundError
            If no row passed validation.
        """
        validations = validate_csv(_read_text(path), account=self.account)
        trades = valid_trades(validations)
        if not trades:
            raise NoTradesFoundError("No valid trades to import; fix the errors and try again", validations)
        summary = self.import_trades(trades)
        summary.validations = validations
        return summary
