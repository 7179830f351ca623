"""
Profit and loss calculation.

Classifies an instrument from its symbol, picks the matching contract
size and turns a price move into a signed monetary result.  The
instrument hint may be either a class name (``"forex"``, ``"stock"``...)
or a raw symbol such as ``"EUR/USD"``, ``"XAUUSD"`` or ``"2222.SR"``.
"""

from __future__ import annotations

import re
from typing import Optional


INSTRUMENT_CLASSES = ("forex", "crypto", "stock", "index", "commodity", "other")

FOREX_CONTRACT_SIZE = 100_000
GOLD_CONTRACT_SIZE = 100
SILVER_CONTRACT_SIZE = 50
COMMODITY_CONTRACT_SIZE = 1_000

_CRYPTO_RE = re.compile(r"^(btc|eth|xrp|ada|dot|sol)", re.I)
_STOCK_SUFFIX_RE = re.compile(r"\.(sr|sa)$", re.I)
_INDEX_RE = re.compile(r"^(spx|ndx|dji|ftse|tasi)", re.I)
_COMMODITY_RE = re.compile(r"^(xau|xag|cl|ng)", re.I)

# ISO codes used to recognise MetaTrader style pairs written without a slash
_CURRENCIES = {
    "USD", "EUR", "GBP", "JPY", "CHF", "AUD", "NZD", "CAD", "SEK", "NOK",
    "DKK", "SGD", "HKD", "ZAR", "MXN", "TRY", "PLN", "CNH", "SAR", "AED",
}


def _is_currency_pair(symbol: str) -> bool:
    s = symbol.strip().upper()
    return len(s) == 6 and s[:3] in _CURRENCIES and s[3:] in _CURRENCIES


def classify_instrument(hint: str) -> str:
    """Infer the instrument class from a class name or symbol.

    Rules are applied in order: ``/`` -> forex, crypto ticker prefix ->
    crypto, exchange suffix -> stock, index ticker -> index, commodity
    prefix -> commodity, six-letter currency pair -> forex, otherwise
    stock.
    """
    text = (hint or "").strip()
    if text.lower() in INSTRUMENT_CLASSES:
        return text.lower()
    if "/" in text:
        return "forex"
    if _CRYPTO_RE.search(text):
        return "crypto"
    if _STOCK_SUFFIX_RE.search(text):
        return "stock"
    if _INDEX_RE.search(text):
        return "index"
    if _COMMODITY_RE.search(text):
        return "commodity"
    if _is_currency_pair(text):
        return "forex"
    return "stock"


def contract_size(instrument_class: str, hint: str = "") -> float:
    """Units per lot for the given class.

    Stocks and indices count the lot size itself as shares, so their
    multiplier is 1.
    """
    if instrument_class == "forex":
        return FOREX_CONTRACT_SIZE
    if instrument_class == "commodity":
        upper = (hint or "").upper()
        if "XAU" in upper:
            return GOLD_CONTRACT_SIZE
        if "XAG" in upper:
            return SILVER_CONTRACT_SIZE
        return COMMODITY_CONTRACT_SIZE
    return 1


def pip_size(hint: str) -> float:
    return 0.01 if "JPY" in (hint or "").upper() else 0.0001


def price_diff(entry: float, exit: float, side: str) -> float:
    """Signed price move: positive when the trade direction gained."""
    if (side or "").strip().lower() in ("buy", "long"):
        return exit - entry
    return entry - exit


def calc_profit_loss(
    entry: float,
    exit: Optional[float],
    lot_size: float,
    side: str,
    instrument: str = "forex",
) -> float:
    """Compute the signed P/L of a trade, rounded to cents.

    Parameters
    ----------
    entry, exit : float
        Entry and exit prices.  An open trade (`exit` is None) is worth 0.
    lot_size : float
        Position size in lots (forex, commodities) or units/shares.
    side : str
        ``Buy``/``Sell`` (``long``/``short`` accepted).
    instrument : str
        Instrument class name or symbol used for classification.

    Returns
    -------
    float
        ``round(diff * lot_size * contract_size, 2)``.  NaN inputs yield NaN.
    """
    if exit is None:
        return 0.0
    cls = classify_instrument(instrument)
    size = contract_size(cls, instrument)
    return round(price_diff(entry, exit, side) * lot_size * size, 2)


def pips(entry: float, exit: float, side: str, instrument: str) -> float:
    """Price move expressed in pips (forex only meaningful)."""
    return round(price_diff(entry, exit, side) / pip_size(instrument), 1)
