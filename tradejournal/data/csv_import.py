"""
Template CSV importer.

Validates files that follow the journal's own CSV template::

    Date,Pair,Type,Entry,Exit,SL,TP,Lot,Notes,Tags,Session

Only ``Date``, ``Pair``, ``Type``, ``Entry`` and ``Lot`` are required
columns.  Unlike the MetaTrader importer nothing is corrected: every
problem with a row is reported, and only rows without errors become
trades.
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence
import pandas as pd

from ..journal.models import Trade
from ..journal.validation import is_blank, parse_number, parse_side, parse_symbol, try_field
from ..utils.timeutils import is_iso_date
from .metatrader_import import ImportFormatError


TEMPLATE_COLUMNS = ["Date", "Pair", "Type", "Entry", "Exit", "SL", "TP", "Lot", "Notes", "Tags", "Session"]
REQUIRED_COLUMNS = ["Date", "Pair", "Type", "Entry", "Lot"]


class MissingColumnsError(ImportFormatError):
    """The CSV header lacks one or more required columns."""

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"The CSV is missing these columns: {', '.join(self.missing)}")


@dataclass
class RowValidation:
    """Outcome of validating one CSV row.

    Attributes
    ----------
    line : int
        1-based line number in the file (the header is line 1).
    errors : list of str
        Human readable problems; empty when the row is valid.
    trade : Trade or None
        The trade built from the row when it is valid.
    """
    line: int
    errors: List[str] = field(default_factory=list)
    trade: Optional[Trade] = None

    @property
    def valid(self) -> bool:
        return not self.errors


def _split_tags(value: str) -> List[str]:
    return [tag.strip() for tag in value.split(",") if tag.strip()]


def validate_row(row: Dict[str, str], line: int, account: str = "") -> RowValidation:
    """Validate one template row and build its trade when it is clean."""
    errors: List[str] = []
    get = lambda key: (row.get(key) or "").strip()

    date_text = get("Date")
    if not date_text:
        errors.append("Date is required")

    pair, err = try_field(parse_symbol, get("Pair"))
    if err:
        errors.append(err)
    side, err = try_field(parse_side, get("Type"))
    if err or get("Type") not in ("Buy", "Sell"):
        errors.append("Type must be 'Buy' or 'Sell'")
    entry, err = try_field(parse_number, get("Entry"), "Entry", required=True)
    if err:
        errors.append("Entry must be a valid number")
    lot_size, err = try_field(parse_number, get("Lot"), "Lot size", required=True)
    if err:
        errors.append("Lot size must be a valid number")

    optional: Dict[str, Optional[float]] = {}
    for column, label in (("Exit", "Exit"), ("SL", "Stop Loss"), ("TP", "Take Profit")):
        optional[column], err = try_field(parse_number, get(column), label)
        if err:
            errors.append(err)

    entry_date: Optional[datetime] = None
    if date_text:
        if is_iso_date(date_text):
            try:
                entry_date = datetime.strptime(date_text, "%Y-%m-%d")
            except ValueError:
                errors.append("Date must be in YYYY-MM-DD format")
        else:
            errors.append("Date must be in YYYY-MM-DD format")

    if errors:
        return RowValidation(line=line, errors=errors)

    trade = Trade(
        pair=pair,
        side=side,
        entry=entry,
        exit=optional["Exit"],
        lot_size=lot_size,
        entry_date=entry_date,
        stop_loss=optional["SL"],
        take_profit=optional["TP"],
        notes=get("Notes"),
        hashtags=_split_tags(get("Tags")),
        account=account,
        market_session=get("Session") or None,
    )
    trade.recalculate()
    return RowValidation(line=line, trade=trade)


def validate_csv(content: str, account: str = "") -> List[RowValidation]:
    """Validate every row of a template CSV.

    Raises
    ------
    ImportFormatError
        If the file holds no data rows.
    MissingColumnsError
        If a required column is absent from the header.
    """
    try:
        df = pd.read_csv(
            io.StringIO(content),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            skipinitialspace=True,
        )
    except pd.errors.EmptyDataError:
        raise ImportFormatError("The CSV file doesn't contain any data") from None
    except pd.errors.ParserError as exc:
        raise ImportFormatError(f"Error parsing CSV: {exc}") from exc

    df.columns = [str(c).strip() for c in df.columns]
    if df.empty:
        raise ImportFormatError("The CSV file doesn't contain any data")
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise MissingColumnsError(missing)

    results: List[RowValidation] = []
    for offset, record in enumerate(df.to_dict(orient="records")):
        if all(is_blank(v) for v in record.values()):
            continue
        results.append(validate_row(record, line=offset + 2, account=account))
    return results


def valid_trades(results: List[RowValidation]) -> List[Trade]:
    return [r.trade for r in results if r.valid and r.trade is not None]


def invalid_rows(results: List[RowValidation]) -> List[RowValidation]:
    return [r for r in results if not r.valid]
