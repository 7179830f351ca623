"""
MetaTrader trade-history importer.

Reads the account history a MetaTrader 4/5 terminal exports and turns
every row into either an `Ok` trade or a `Skipped` entry explaining why
the row was dropped.  Three export formats are accepted:

* CSV, with or without a header row.  Rows are read by position and
  three widths are recognised::

      7  ticket, open time, type, size, symbol, open price, close price
      10 ticket, open time, type, size, symbol, open price, sl, tp,
         close time, close price
      13 the 10-column layout followed by commission, swap, profit

* XML, one ``<order>`` element per trade with the values as attributes.
* HTML, the statement report.  The first table with more than one row
  is read like the CSV layout above.

Dates that cannot be read fall back to the import time; prices and
sizes that cannot be read skip the row.  A close price of 0 marks a
position that is still open.
"""

from __future__ import annotations

import csv
import io
import logging
import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from bs4 import BeautifulSoup

from ..journal.models import Ok, RowResult, Skipped, Trade, accepted
from ..journal.validation import FieldError, is_blank, parse_number, parse_side
from ..utils.timeutils import minutes_between, parse_datetime, parse_datetime_or_now


logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".csv", ".xml", ".html", ".htm")

_LAYOUTS = {
    7: ("ticket", "open_time", "type", "size", "symbol", "open_price", "close_price"),
    10: ("ticket", "open_time", "type", "size", "symbol", "open_price", "sl", "tp",
         "close_time", "close_price"),
    13: ("ticket", "open_time", "type", "size", "symbol", "open_price", "sl", "tp",
         "close_time", "close_price", "commission", "swap", "profit"),
}


class ImportFormatError(ValueError):
    """The file could not be read as the format its name claims."""


class UnsupportedFormatError(ImportFormatError):
    """The file extension is not one of the supported export formats."""


def _layout_for(width: int) -> Optional[Sequence[str]]:
    if width >= 13:
        return _LAYOUTS[13]
    if width >= 10:
        return _LAYOUTS[10]
    if width >= 7:
        return _LAYOUTS[7]
    return None


def _looks_like_header(cells: Sequence[str]) -> bool:
    """A header row carries no numeric cell at all."""
    for cell in cells:
        try:
            parse_number(cell, "cell")
        except FieldError:
            continue
        if not is_blank(cell):
            return False
    return True


def _optional_price(value, label: str) -> Optional[float]:
    # MetaTrader writes 0 for "no stop loss / take profit / not closed"
    number = parse_number(value, label)
    return number or None


def normalize_order(
    fields: Dict[str, str],
    line: int = 0,
    hashtags: Sequence[str] = ("imported",),
    now: Optional[datetime] = None,
) -> RowResult:
    """Build a trade from one export row keyed by layout field names."""
    symbol = (fields.get("symbol") or "").strip()
    if not symbol:
        return Skipped("missing symbol", line)
    try:
        side = parse_side(fields.get("type"))
    except FieldError:
        return Skipped(f"unknown trade type {fields.get('type')!r}", line)

    try:
        entry = parse_number(fields.get("open_price"), "Entry", required=True)
        exit_price = _optional_price(fields.get("close_price"), "Exit")
        lot_size = parse_number(fields.get("size"), "Lot size", required=True)
        stop_loss = _optional_price(fields.get("sl"), "Stop Loss")
        take_profit = _optional_price(fields.get("tp"), "Take Profit")
        commission = parse_number(fields.get("commission"), "Commission") or 0.0
        swap = parse_number(fields.get("swap"), "Swap") or 0.0
    except FieldError as exc:
        return Skipped(str(exc), line)

    entry_date = parse_datetime_or_now(fields.get("open_time"), now)
    exit_date = parse_datetime(fields.get("close_time")) if exit_price is not None else None
    trade = Trade(
        pair=symbol,
        side=side,
        entry=entry,
        exit=exit_price,
        lot_size=lot_size,
        entry_date=entry_date,
        exit_date=exit_date,
        stop_loss=stop_loss,
        take_profit=take_profit,
        duration_minutes=minutes_between(entry_date, exit_date),
        commission=round(abs(commission) + abs(swap), 2),
        notes=f"Imported from MetaTrader - Ticket: {(fields.get('ticket') or '').strip()}",
        hashtags=list(hashtags),
    )
    trade.recalculate()
    return Ok(trade, line)


def _rows_to_results(
    rows: List[List[str]],
    first_line: int,
    hashtags: Sequence[str],
    now: Optional[datetime],
) -> List[RowResult]:
    results: List[RowResult] = []
    for offset, row in enumerate(rows):
        line = first_line + offset
        cells = [str(c).strip() for c in row]
        if not any(cells):
            continue
        layout = _layout_for(len(cells))
        if layout is None:
            results.append(Skipped(f"expected at least 7 columns, got {len(cells)}", line))
            continue
        results.append(normalize_order(dict(zip(layout, cells)), line, hashtags, now))
    return results


def parse_csv(
    text: str,
    hashtags: Sequence[str] = ("imported",),
    now: Optional[datetime] = None,
) -> List[RowResult]:
    """Parse a positional MetaTrader CSV export."""
    rows = [row for row in csv.reader(io.StringIO(text)) if any(c.strip() for c in row)]
    if not rows:
        return []
    first_line = 1
    if _looks_like_header(rows[0]):
        rows = rows[1:]
        first_line = 2
    return _rows_to_results(rows, first_line, hashtags, now)


def parse_xml(
    text: str,
    hashtags: Sequence[str] = ("imported",),
    now: Optional[datetime] = None,
) -> List[RowResult]:
    """Parse an XML export made of ``<order .../>`` elements."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ImportFormatError(f"Malformed XML export: {exc}") from exc
    results: List[RowResult] = []
    for line, order in enumerate(root.iter("order"), start=1):
        fields = {
            "ticket": order.get("ticket", ""),
            "symbol": order.get("symbol", ""),
            "type": order.get("type", ""),
            "size": order.get("lots", ""),
            "open_price": order.get("open_price", ""),
            "close_price": order.get("close_price", ""),
            "sl": order.get("sl", ""),
            "tp": order.get("tp", ""),
            "open_time": order.get("open_time", ""),
            "close_time": order.get("close_time", ""),
            "commission": order.get("commission", ""),
            "swap": order.get("swap", ""),
            "profit": order.get("profit", ""),
        }
        results.append(normalize_order(fields, line, hashtags, now))
    return results


def _first_data_table(soup: BeautifulSoup):
    for table in soup.find_all("table"):
        if len(table.find_all("tr")) > 1:
            return table
    return None


def html_table_to_csv(table) -> str:
    """Render every row of an HTML table, header cells included, as CSV."""
    out = io.StringIO()
    writer = csv.writer(out)
    for tr in table.find_all("tr"):
        writer.writerow([cell.get_text(strip=True) for cell in tr.find_all(["td", "th"])])
    return out.getvalue()


def parse_html(
    text: str,
    hashtags: Sequence[str] = ("imported",),
    now: Optional[datetime] = None,
) -> List[RowResult]:
    """Parse an HTML statement.

    The data rows of the first table with more than one row are read
    from their ``<td>`` cells.  If that produces no trade, the whole
    table is converted to CSV and parsed again, which covers reports
    that put data in ``<th>`` cells or lead with a non-header row.
    """
    soup = BeautifulSoup(text, "html.parser")
    table = _first_data_table(soup)
    if table is None:
        return []
    rows = [[td.get_text(strip=True) for td in tr.find_all("td")] for tr in table.find_all("tr")[1:]]
    results = _rows_to_results(rows, 2, hashtags, now)
    if accepted(results):
        return results
    logger.debug("No trades in HTML table cells, retrying as CSV")
    return parse_csv(html_table_to_csv(table), hashtags, now)


def parse_export(
    content: str,
    filename: str,
    hashtags: Sequence[str] = ("imported",),
    now: Optional[datetime] = None,
) -> List[RowResult]:
    """Dispatch to the parser matching the file extension.

    Raises
    ------
    UnsupportedFormatError
        If the extension is not ``.csv``, ``.xml``, ``.html`` or ``.htm``.
    """
    ext = Path(filename).suffix.lower()
    if ext == ".csv":
        results = parse_csv(content, hashtags, now)
    elif ext == ".xml":
        results = parse_xml(content, hashtags, now)
    elif ext in (".html", ".htm"):
        results = parse_html(content, hashtags, now)
    else:
        raise UnsupportedFormatError(
            f"Unsupported file format {ext or filename!r}; expected one of {', '.join(SUPPORTED_EXTENSIONS)}"
        )
    for result in results:
        if isinstance(result, Skipped):
            logger.debug("Skipped line %d of %s: %s", result.line, filename, result.reason)
    return results
