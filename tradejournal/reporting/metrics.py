"""
Performance metrics calculations.

This module provides helpers to compute the journal's statistics from
a list of trades: overall win/loss figures, a daily P/L series with
its running total, and breakdowns by hashtag and trading session.
Open trades (no exit price) are left out of every statistic.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, List

from ..journal.models import Trade


def _closed(trades: List[Trade]) -> List[Trade]:
    return [t for t in trades if t.exit is not None]


def compute_metrics(trades: List[Trade]) -> dict:
    """Compute summary statistics for the given trades.

    Parameters
    ----------
    trades : list of Trade
        Journal trades; open ones are ignored.

    Returns
    -------
    dict
        Keys: ``total_trades``, ``winning_trades``, ``losing_trades``,
        ``breakeven_trades``, ``total_pl``, ``net_pl``, ``win_rate``
        (percent), ``avg_win``, ``avg_loss``, ``largest_win``,
        ``largest_loss``, ``profit_factor``, ``win_loss_ratio``,
        ``expectancy``, ``avg_duration_minutes``.
    """
    closed = _closed(trades)
    if not closed:
        return {
            'total_trades': 0,
            'winning_trades': 0,
            'losing_trades': 0,
            'breakeven_trades': 0,
            'total_pl': 0.0,
            'net_pl': 0.0,
            'win_rate': 0.0,
            'avg_win': 0.0,
            'avg_loss': 0.0,
            'largest_win': 0.0,
            'largest_loss': 0.0,
            'profit_factor': 0.0,
            'win_loss_ratio': 0.0,
            'expectancy': 0.0,
            'avg_duration_minutes': 0.0,
        }

    pnls = [t.profit_loss for t in closed]
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p < 0]
    n = len(closed)

    total_pl = sum(pnls)
    win_rate = len(wins) / n
    avg_win = sum(wins) / len(wins) if wins else 0.0
    avg_loss = sum(losses) / len(losses) if losses else 0.0
    gross_profit = sum(wins)
    gross_loss = -sum(losses)
    profit_factor = gross_profit / gross_loss if gross_loss > 0 else 0.0
    win_loss_ratio = avg_win / abs(avg_loss) if avg_loss else 0.0
    loss_rate = len(losses) / n
    # expected P/L per trade
    expectancy = win_rate * avg_win + loss_rate * avg_loss

    durations = [t.duration_minutes for t in closed if t.duration_minutes is not None]
    avg_duration = sum(durations) / len(durations) if durations else 0.0

    return {
        'total_trades': n,
        'winning_trades': len(wins),
        'losing_trades': len(losses),
        'breakeven_trades': n - len(wins) - len(losses),
        'total_pl': round(total_pl, 2),
        'net_pl': round(sum(t.net_profit for t in closed), 2),
        'win_rate': round(win_rate * 100, 1),
        'avg_win': round(avg_win, 2),
        'avg_loss': round(avg_loss, 2),
        'largest_win': round(max(wins), 2) if wins else 0.0,
        'largest_loss': round(min(losses), 2) if losses else 0.0,
        'profit_factor': round(profit_factor, 2),
        'win_loss_ratio': round(win_loss_ratio, 2),
        'expectancy': round(expectancy, 2),
        'avg_duration_minutes': round(avg_duration, 1),
    }


def daily_pnl(trades: List[Trade]) -> List[dict]:
    """P/L per trading day with the cumulative total, oldest day first."""
    by_day: Dict = defaultdict(float)
    counts: Dict = defaultdict(int)
    for t in _closed(trades):
        day = (t.exit_date or t.entry_date).date()
        by_day[day] += t.profit_loss
        counts[day] += 1

    rows: List[dict] = []
    running = 0.0
    for day in sorted(by_day):
        running += by_day[day]
        rows.append({
            'date': day.isoformat(),
            'trades': counts[day],
            'pl': round(by_day[day], 2),
            'cumulative': round(running, 2),
        })
    return rows


def _group_stats(groups: Dict[str, List[Trade]]) -> List[dict]:
    rows = []
    for name, items in groups.items():
        wins = sum(1 for t in items if t.profit_loss > 0)
        rows.append({
            'name': name,
            'trades': len(items),
            'pl': round(sum(t.profit_loss for t in items), 2),
            'win_rate': round(wins / len(items) * 100, 1),
        })
    rows.sort(key=lambda r: r['pl'], reverse=True)
    return rows


def hashtag_breakdown(trades: List[Trade]) -> List[dict]:
    """Statistics per hashtag; a trade counts once for each of its tags."""
    groups: Dict[str, List[Trade]] = defaultdict(list)
    for t in _closed(trades):
        for tag in {h.lstrip("#").lower() for h in t.hashtags}:
            groups[tag].append(t)
    return _group_stats(groups)


def session_breakdown(trades: List[Trade]) -> List[dict]:
    """Statistics per market session (trades without one are ``unspecified``)."""
    groups: Dict[str, List[Trade]] = defaultdict(list)
    for t in _closed(trades):
        groups[t.market_session or "unspecified"].append(t)
    return _group_stats(groups)
