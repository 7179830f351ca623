"""
Application entry point.

This module defines a simple command‑line interface for the trade
journal: importing broker exports, adding and removing trades,
listing them and generating reports.  It leverages the modules under
`tradejournal/` to load configuration, parse files and store trades.
"""

from __future__ import annotations

import argparse
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from .config.schema import Config, load_config
from .data.importer import ImportSummary, NoTradesFoundError, TradeImporter
from .data.metatrader_import import ImportFormatError
from .data.mt5_history import MT5HistoryFeed
from .journal.models import Trade
from .journal.pnl import calc_profit_loss, classify_instrument
from .journal.validation import parse_number, parse_side
from .reporting.metrics import compute_metrics
from .reporting.report import export_template_csv, generate_journal_report
from .storage.repository import JsonTradeRepository, StorageError
from .storage.session import TradeStore
from .utils.timeutils import parse_datetime


logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def open_store(config: Config, user_id: str) -> TradeStore:
    """Build the repository and load the user's session."""
    repository = JsonTradeRepository(config.storage.trades_path)
    store = TradeStore(repository, config.storage.session_path, config.hashtags)
    return store.load(user_id)


def _report_import(summary: ImportSummary) -> None:
    logger.info(
        "Imported %d trade(s); %d duplicate(s) skipped; %d unreadable row(s)",
        len(summary.imported), len(summary.duplicates), len(summary.skipped),
    )
    for row in summary.invalid_rows:
        logger.warning("Row %d not imported: %s", row.line, "; ".join(row.errors))


def _cmd_import(args, config: Config, store: TradeStore) -> None:
    importer = TradeImporter(store, config.imports.batch_size, config.imports.default_hashtags, config.account)
    _report_import(importer.import_file(args.file))


def _cmd_import_csv(args, config: Config, store: TradeStore) -> None:
    importer = TradeImporter(store, config.imports.batch_size, (), config.account)
    try:
        summary = importer.import_strict_csv(args.file)
    except NoTradesFoundError as exc:
        for row in exc.validations:
            if not row.valid:
                logger.warning("Row %d: %s", row.line, "; ".join(row.errors))
        raise
    _report_import(summary)


def _cmd_add(args, config: Config, store: TradeStore) -> None:
    entry = parse_number(args.entry, "Entry", required=True)
    exit_price = parse_number(args.exit, "Exit")
    lot_size = parse_number(args.lot, "Lot size", required=True)
    side = parse_side(args.type)
    entry_date = parse_datetime(args.date) if args.date else datetime.now().replace(microsecond=0)
    if entry_date is None:
        raise ValueError(f"Cannot read date {args.date!r}")
    trade = Trade(
        pair=args.pair,
        side=side,
        entry=entry,
        exit=exit_price,
        lot_size=lot_size,
        entry_date=entry_date,
        stop_loss=parse_number(args.sl, "Stop Loss"),
        take_profit=parse_number(args.tp, "Take Profit"),
        commission=abs(parse_number(args.commission, "Commission") or 0.0),
        notes=args.notes or "",
        hashtags=[t.strip() for t in (args.tags or "").split(",") if t.strip()],
        account=config.account,
        market_session=args.session,
    )
    trade.recalculate()
    store.add_trade(trade)
    logger.info("Added trade %s: %s %s P/L %.2f", trade.id, trade.side, trade.pair, trade.profit_loss)


def _cmd_list(args, config: Config, store: TradeStore) -> None:
    trades = store.find_trades(symbol=args.symbol, hashtag=args.tag, account=args.account)
    for t in trades:
        exit_text = f"{t.exit:g}" if t.exit is not None else "open"
        print(f"{t.id}  {t.entry_date:%Y-%m-%d}  {t.side:<4}  {t.pair:<10}  "
              f"{t.entry:g} -> {exit_text}  lot {t.lot_size:g}  P/L {t.profit_loss:,.2f}  "
              f"{' '.join('#' + h for h in t.hashtags)}")
    m = compute_metrics(trades)
    print(f"{m['total_trades']} closed trade(s), win rate {m['win_rate']}%, total P/L {m['total_pl']:,.2f}")


def _cmd_delete(args, config: Config, store: TradeStore) -> None:
    if store.delete_trade(args.trade_id, is_admin=args.admin):
        logger.info("Trade %s deleted", args.trade_id)
    else:
        logger.warning("Trade %s not found", args.trade_id)


def _cmd_report(args, config: Config, store: TradeStore) -> None:
    out_dir = args.out or config.reporting.out_dir
    generate_journal_report(store.trades, out_dir)
    logger.info("Report written to %s", out_dir)


def _cmd_export(args, config: Config, store: TradeStore) -> None:
    export_template_csv(store.trades, args.file)
    logger.info("Exported %d trade(s) to %s", len(store.trades), args.file)


def _cmd_mt5_sync(args, config: Config, store: TradeStore) -> None:
    feed = MT5HistoryFeed(config.mt5)
    feed.connect()
    try:
        end = datetime.now(timezone.utc).replace(tzinfo=None)
        trades = feed.fetch_closed_trades(end - timedelta(days=args.days), end)
    finally:
        feed.shutdown()
    importer = TradeImporter(store, config.imports.batch_size, account=config.account)
    _report_import(importer.import_trades(trades))


def _cmd_pl(args) -> None:
    pl = calc_profit_loss(args.entry, args.exit, args.lot, args.side, args.instrument)
    print(f"{classify_instrument(args.instrument)}: {pl:,.2f}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Trading journal")
    parser.add_argument('--config', default='config.yaml', help="Path to configuration YAML file")
    parser.add_argument('--user', help="Journal owner (defaults to user_id from the config)")
    parser.add_argument('--admin', action='store_true', help="Act with administrator rights")
    parser.add_argument('-v', '--verbose', action='store_true', help="Enable debug logging")
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('import', help="Import a MetaTrader CSV/XML/HTML history export")
    p.add_argument('file')
    p = sub.add_parser('import-csv', help="Import a journal template CSV")
    p.add_argument('file')

    p = sub.add_parser('add', help="Add a trade manually")
    p.add_argument('--pair', required=True)
    p.add_argument('--type', required=True, help="Buy or Sell")
    p.add_argument('--entry', required=True)
    p.add_argument('--exit')
    p.add_argument('--lot', required=True)
    p.add_argument('--date', help="Entry date/time (defaults to now)")
    p.add_argument('--sl')
    p.add_argument('--tp')
    p.add_argument('--commission')
    p.add_argument('--notes')
    p.add_argument('--tags', help="Comma separated hashtags")
    p.add_argument('--session')

    p = sub.add_parser('list', help="List trades")
    p.add_argument('--symbol')
    p.add_argument('--tag')
    p.add_argument('--account', help="Only trades of this trading account")

    p = sub.add_parser('delete', help="Delete a trade")
    p.add_argument('trade_id')

    p = sub.add_parser('report', help="Write CSV/JSON/PNG report")
    p.add_argument('--out', help="Output directory")

    p = sub.add_parser('export', help="Export trades as a template CSV")
    p.add_argument('file')

    p = sub.add_parser('mt5-sync', help="Import closed trades from a MetaTrader 5 terminal")
    p.add_argument('--days', type=int, default=30)

    p = sub.add_parser('pl', help="Calculate profit/loss")
    p.add_argument('entry', type=float)
    p.add_argument('exit', type=float)
    p.add_argument('lot', type=float)
    p.add_argument('side', choices=['Buy', 'Sell'])
    p.add_argument('instrument', nargs='?', default='forex')
    return parser


COMMANDS = {
    'import': _cmd_import,
    'import-csv': _cmd_import_csv,
    'add': _cmd_add,
    'list': _cmd_list,
    'delete': _cmd_delete,
    'report': _cmd_report,
    'export': _cmd_export,
    'mt5-sync': _cmd_mt5_sync,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Parse command‑line arguments and dispatch to the chosen command."""
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    if args.command == 'pl':
        _cmd_pl(args)
        return 0

    config = load_config(args.config)
    user_id = args.user or config.user_id
    try:
        store = open_store(config, user_id)
        COMMANDS[args.command](args, config, store)
        store.persist()
    except FileNotFoundError as exc:
        logger.error("File not found: %s", exc.filename)
        return 1
    except (ImportFormatError, ValueError) as exc:
        logger.error("%s", exc)
        return 1
    except PermissionError as exc:
        logger.error("Permission denied: %s", exc)
        return 1
    except (StorageError, RuntimeError) as exc:
        logger.error("Operation failed: %s", exc)
        return 2
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
