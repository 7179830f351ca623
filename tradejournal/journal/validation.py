"""
Field validation shared by both importers.

Every importer reads prices, sizes and sides through these helpers so
that a value is either accepted or rejected with a message; nothing is
quietly turned into zero.
"""

from __future__ import annotations

import math
import re
from typing import Optional, Tuple

from .models import normalize_side

_THOUSANDS_RE = re.compile(r"(?<=\d)[ ,](?=\d{3}\b)")


class FieldError(ValueError):
    """A single field failed validation."""


def is_blank(value) -> bool:
    return value is None or str(value).strip() == ""


def parse_number(value, label: str, required: bool = False) -> Optional[float]:
    """Parse a decimal field.

    Blank values return `None` (or raise when `required`).  Thousands
    separators are tolerated; anything else that is not a finite number
    raises `FieldError`.
    """
    if is_blank(value):
        if required:
            raise FieldError(f"{label} is required")
        return None
    text = _THOUSANDS_RE.sub("", str(value).strip())
    try:
        number = float(text)
    except ValueError:
        raise FieldError(f"{label} must be a valid number") from None
    if not math.isfinite(number):
        raise FieldError(f"{label} must be a valid number")
    return number


def parse_side(value) -> str:
    side = normalize_side(str(value or ""))
    if side is None:
        raise FieldError("Type must be 'Buy' or 'Sell'")
    return side


def parse_symbol(value) -> str:
    if is_blank(value):
        raise FieldError("Pair is required")
    return str(value).strip()


def try_field(parser, *args, **kwargs) -> Tuple[Optional[object], Optional[str]]:
    """Run a field parser, returning ``(value, error_message)``."""
    try:
        return parser(*args, **kwargs), None
    except FieldError as exc:
        return None, str(exc)
