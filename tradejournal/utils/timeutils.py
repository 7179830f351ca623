"""
Date and time parsing utilities.

Broker exports write timestamps in many shapes: MetaTrader's
``2024.03.05 14:30:00``, ISO strings, day-first ``05/03/2024``.  This
module centralises the parsing so every importer accepts the same set.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Optional
import pandas as pd


logger = logging.getLogger(__name__)

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_FORMATS = (
    "%Y.%m.%d %H:%M:%S",
    "%Y.%m.%d %H:%M",
    "%Y.%m.%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
)


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a timestamp string into a naive `datetime`.

    Known broker formats are tried first (day-first for slash dates),
    then pandas' own parser.  Returns `None` when nothing matches.
    """
    text = (value or "").strip()
    if not text:
        return None
    for fmt in _FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    ts = pd.to_datetime(text, errors="coerce")
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts.to_pydatetime()


def parse_datetime_or_now(value: Optional[str], now: Optional[datetime] = None) -> datetime:
    """Like `parse_datetime`, but fall back to the current time.

    Used by the lenient importer, which keeps a row with an unreadable
    date rather than dropping it.
    """
    parsed = parse_datetime(value)
    if parsed is not None:
        return parsed
    fallback = now or datetime.now().replace(microsecond=0)
    logger.warning("Unreadable trade date %r, using %s", value, fallback.isoformat())
    return fallback


def minutes_between(start: Optional[datetime], end: Optional[datetime]) -> Optional[int]:
    """Whole minutes from `start` to `end`, or `None` if either is missing."""
    if start is None or end is None:
        return None
    return int(round((end - start).total_seconds() / 60))


def is_iso_date(value: str) -> bool:
    """Check for the strict ``YYYY-MM-DD`` shape."""
    return bool(ISO_DATE_RE.match((value or "").strip()))
