"""
Report generation utilities.

This module turns journal trades into human‑readable artefacts:
CSV files of trades and daily P/L, a JSON summary of performance
metrics and a PNG chart of the cumulative P/L.  It also writes trades
back out in the template CSV layout the strict importer reads.
"""

from __future__ import annotations

import json
import os
from typing import List
import pandas as pd
import matplotlib

# Use non‑interactive backend for environments without display
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from ..data.csv_import import TEMPLATE_COLUMNS
from ..journal.models import Trade
from .metrics import compute_metrics, daily_pnl, hashtag_breakdown, session_breakdown


def trades_frame(trades: List[Trade]) -> pd.DataFrame:
    """One row per trade in the persisted field names."""
    rows = [
        {
            'id': t.id,
            'entry_date': t.entry_date.isoformat(),
            'exit_date': t.exit_date.isoformat() if t.exit_date else None,
            'symbol': t.pair,
            'direction': t.direction,
            'quantity': t.lot_size,
            'entry_price': t.entry,
            'exit_price': t.exit,
            'profit_loss': t.profit_loss,
            'fees': t.commission,
            'net_profit': t.net_profit,
            'duration_minutes': t.duration_minutes,
            'session': t.market_session,
            'tags': ",".join(t.hashtags),
            'notes': t.notes,
        }
        for t in trades
    ]
    return pd.DataFrame(rows)


def generate_journal_report(trades: List[Trade], out_dir: str = "results") -> dict:
    """Generate report files for the given trades.

    Creates the output directory if it does not exist and writes the
    following files:

    - `trades.csv` – detailed list of trades
    - `daily_pnl.csv` – P/L per day with the running total
    - `summary.json` – performance metrics and breakdowns
    - `equity_curve.png` – line chart of the cumulative P/L

    Returns the summary dictionary written to `summary.json`.
    """
    os.makedirs(out_dir, exist_ok=True)

    trades_frame(trades).to_csv(os.path.join(out_dir, 'trades.csv'), index=False)

    daily = daily_pnl(trades)
    df_daily = pd.DataFrame(daily, columns=['date', 'trades', 'pl', 'cumulative'])
    df_daily.to_csv(os.path.join(out_dir, 'daily_pnl.csv'), index=False)

    summary = {
        'metrics': compute_metrics(trades),
        'hashtags': hashtag_breakdown(trades),
        'sessions': session_breakdown(trades),
    }
    with open(os.path.join(out_dir, 'summary.json'), 'w', encoding='utf-8') as fh:
        json.dump(summary, fh, indent=2, ensure_ascii=False)

    fig, ax = plt.subplots(figsize=(10, 4))
    if not df_daily.empty:
        ax.plot(pd.to_datetime(df_daily['date']), df_daily['cumulative'], linewidth=1.5)
        ax.axhline(0.0, color='grey', linewidth=0.8)
        ax.set_title('Cumulative P/L')
        ax.set_xlabel('Date')
        ax.set_ylabel('P/L')
        fig.autofmt_xdate()
    fig.tight_layout()
    fig.savefig(os.path.join(out_dir, 'equity_curve.png'))
    plt.close(fig)
    return summary


def export_template_csv(trades: List[Trade], path: str) -> None:
    """Write trades in the template layout accepted by the strict importer."""
    def _num(value):
        return "" if value is None else value

    rows = [
        {
            'Date': t.entry_date.strftime('%Y-%m-%d'),
            'Pair': t.pair,
            'Type': t.side,
            'Entry': t.entry,
            'Exit': _num(t.exit),
            'SL': _num(t.stop_loss),
            'TP': _num(t.take_profit),
            'Lot': t.lot_size,
            'Notes': (t.notes or "").replace("\n", " ").strip(),
            'Tags': ",".join(t.hashtags),
            'Session': t.market_session or "",
        }
        for t in trades
    ]
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    pd.DataFrame(rows, columns=TEMPLATE_COLUMNS).to_csv(path, index=False)
