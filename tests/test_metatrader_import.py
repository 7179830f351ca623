import os
import sys
from datetime import datetime

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from tradejournal.data.metatrader_import import (
    ImportFormatError,
    UnsupportedFormatError,
    parse_csv,
    parse_export,
    parse_html,
    parse_xml,
)
from tradejournal.journal.models import Ok, Skipped, accepted, skipped

import unittest


NOW = datetime(2024, 6, 1, 12, 0, 0)


class TestMetaTraderCsv(unittest.TestCase):
    def test_seven_column_rows_without_header(self) -> None:
        text = "1001,2024.03.05 14:30:00,buy,1.00,EURUSD,1.1000,1.1050\n"
        results = parse_csv(text, now=NOW)
        self.assertEqual(len(results), 1)
        self.assertIsInstance(results[0], Ok)
        trade = results[0].trade
        self.assertEqual(results[0].line, 1)
        self.assertEqual(trade.pair, "EURUSD")
        self.assertEqual(trade.side, "Buy")
        self.assertEqual(trade.entry_date, datetime(2024, 3, 5, 14, 30))
        self.assertIsNone(trade.exit_date)
        self.assertEqual(trade.profit_loss, 500.00)
        self.assertEqual(trade.hashtags, ["imported"])
        self.assertEqual(trade.notes, "Imported from MetaTrader - Ticket: 1001")

    def test_header_row_is_skipped(self) -> None:
        text = (
            "Ticket,Open Time,Type,Size,Item,Price,S/L,T/P,Close Time,Close Price\n"
            "1002,2024.03.05 10:00,sell,0.50,GBPUSD,1.2700,1.2750,0,2024.03.05 12:00,1.2650\n"
        )
        results = parse_csv(text, now=NOW)
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].line, 2)
        trade = results[0].trade
        self.assertEqual(trade.side, "Sell")
        self.assertEqual(trade.stop_loss, 1.2750)
        self.assertIsNone(trade.take_profit)
        self.assertEqual(trade.exit_date, datetime(2024, 3, 5, 12, 0))
        self.assertEqual(trade.duration_minutes, 120)
        self.assertEqual(trade.profit_loss, 250.00)

    def test_ten_column_rows_without_header(self) -> None:
        text = "1011,2024.03.05 09:15,buy,0.2,USDJPY,150.00,149.50,151.00,2024.03.05 11:45,150.50\n"
        results = parse_csv(text, now=NOW)
        self.assertEqual(len(results), 1)
        trade = results[0].trade
        self.assertEqual(results[0].line, 1)
        self.assertEqual(trade.stop_loss, 149.50)
        self.assertEqual(trade.take_profit, 151.00)
        self.assertEqual(trade.exit, 150.50)
        self.assertEqual(trade.exit_date, datetime(2024, 3, 5, 11, 45))
        self.assertEqual(trade.duration_minutes, 150)
        self.assertEqual(trade.commission, 0.0)
        self.assertEqual(trade.profit_loss, 10000.00)

    def test_zero_close_price_is_an_open_trade(self) -> None:
        results = parse_csv("1012,2024.03.05 14:30,buy,1,EURUSD,1.1000,0\n", now=NOW)
        trade = results[0].trade
        self.assertIsNone(trade.exit)
        self.assertIsNone(trade.exit_date)
        self.assertEqual(trade.profit_loss, 0.0)

        ten = "1013,2024.03.05 14:30,sell,1,EURUSD,1.1000,0,0,2024.03.05 15:00,0\n"
        trade = accepted(parse_csv(ten, now=NOW))[0]
        self.assertIsNone(trade.exit)
        self.assertIsNone(trade.duration_minutes)
        self.assertEqual(trade.profit_loss, 0.0)

    def test_thirteen_columns_fold_swap_into_commission(self) -> None:
        text = "1003,2024.03.06 09:00,buy,2,XAUUSD,2000,0,0,2024.03.06 10:30,2010,-7.00,-1.50,999\n"
        trade = accepted(parse_csv(text, now=NOW))[0]
        self.assertEqual(trade.commission, 8.50)
        # broker profit column is not trusted
        self.assertEqual(trade.profit_loss, 2000.00)
        self.assertEqual(trade.net_profit, 1991.50)

    def test_unreadable_rows_are_skipped(self) -> None:
        text = (
            "1004,2024.03.07 09:00,balance,0,,0,0\n"
            "1005,2024.03.07 09:00,buy,1,,1.1,1.2\n"
            "1006,2024.03.07 09:00,buy,1,EURUSD,abc,1.2\n"
            "1007,2024.03.07,buy\n"
            "1008,2024.03.07 09:00,sell,1,USDJPY,150.00,149.50\n"
        )
        results = parse_csv(text, now=NOW)
        self.assertEqual(len(results), 5)
        self.assertEqual(len(accepted(results)), 1)
        reasons = [r.reason for r in skipped(results)]
        self.assertEqual(reasons[0], "missing symbol")
        self.assertEqual(reasons[1], "missing symbol")
        self.assertEqual(reasons[2], "Entry must be a valid number")
        self.assertIn("at least 7 columns", reasons[3])
        self.assertEqual([r.line for r in skipped(results)], [1, 2, 3, 4])

    def test_unknown_type_is_skipped(self) -> None:
        results = parse_csv("1009,2024.03.07 09:00,deposit,1,EURUSD,1.1,1.2\n", now=NOW)
        self.assertIsInstance(results[0], Skipped)
        self.assertIn("unknown trade type", results[0].reason)

    def test_unreadable_date_falls_back_to_now(self) -> None:
        results = parse_csv("1010,someday,buy,1,EURUSD,1.1,1.1\n", now=NOW)
        self.assertEqual(results[0].trade.entry_date, NOW)

    def test_empty_input(self) -> None:
        self.assertEqual(parse_csv("", now=NOW), [])
        self.assertEqual(parse_csv("\n\n", now=NOW), [])


class TestMetaTraderXml(unittest.TestCase):
    def test_order_elements(self) -> None:
        text = (
            "<orders>"
            "<order ticket='1' symbol='GBPUSD' type='sell' lots='0.5' open_price='1.2700' "
            "close_price='1.2650' open_time='2024.03.05 10:00' close_time='2024.03.05 12:00' "
            "commission='-3' swap='0'/>"
            "<order ticket='2' symbol='' type='buy' lots='1' open_price='1' close_price='2'/>"
            "</orders>"
        )
        results = parse_xml(text, now=NOW)
        self.assertEqual(len(results), 2)
        trade = results[0].trade
        self.assertEqual(trade.pair, "GBPUSD")
        self.assertEqual(trade.profit_loss, 250.00)
        self.assertEqual(trade.commission, 3.00)
        self.assertEqual(trade.duration_minutes, 120)
        self.assertIsInstance(results[1], Skipped)

    def test_malformed_xml(self) -> None:
        with self.assertRaises(ImportFormatError):
            parse_xml("<orders><order", now=NOW)


class TestMetaTraderHtml(unittest.TestCase):
    def test_first_table_with_rows(self) -> None:
        text = (
            "<html><body>"
            "<table><tr><td>Account: 123</td></tr></table>"
            "<table>"
            "<tr><th>Ticket</th><th>Open Time</th><th>Type</th><th>Size</th><th>Item</th>"
            "<th>Price</th><th>Close Price</th></tr>"
            "<tr><td>1</td><td>2024.03.05 14:30</td><td>buy</td><td>1</td><td>AAPL</td>"
            "<td>100</td><td>110</td></tr>"
            "<tr><td>2</td><td>2024.03.05 15:30</td><td>sell</td><td>1</td><td>AAPL</td>"
            "<td>110</td><td>105</td></tr>"
            "</table></body></html>"
        )
        results = parse_html(text, now=NOW)
        trades = accepted(results)
        self.assertEqual(len(trades), 2)
        self.assertEqual([r.line for r in results], [2, 3])
        self.assertEqual(trades[0].profit_loss, 10.00)
        self.assertEqual(trades[1].profit_loss, 5.00)

    def test_table_with_single_row_yields_nothing(self) -> None:
        text = "<table><tr><td>1</td><td>2024.03.05</td><td>buy</td><td>1</td><td>AAPL</td><td>1</td><td>2</td></tr></table>"
        self.assertEqual(parse_html(text, now=NOW), [])

    def test_no_table(self) -> None:
        self.assertEqual(parse_html("<p>nothing here</p>", now=NOW), [])

    def test_header_cells_fall_back_to_csv(self) -> None:
        text = (
            "<table>"
            "<tr><th>Ticket</th><th>Open Time</th><th>Type</th><th>Size</th><th>Item</th>"
            "<th>Price</th><th>Close Price</th></tr>"
            "<tr><th>7</th><th>2024.03.05 14:30</th><th>buy</th><th>0.1</th><th>EURUSD</th>"
            "<th>1.1000</th><th>1.1010</th></tr>"
            "</table>"
        )
        trades = accepted(parse_html(text, now=NOW))
        self.assertEqual(len(trades), 1)
        self.assertEqual(trades[0].profit_loss, 10.00)


class TestParseExport(unittest.TestCase):
    def test_dispatch_on_extension(self) -> None:
        text = "1,2024.03.05 14:30,buy,1,EURUSD,1.1,1.1\n"
        self.assertEqual(len(parse_export(text, "History.CSV", now=NOW)), 1)

    def test_custom_hashtags(self) -> None:
        text = "1,2024.03.05 14:30,buy,1,EURUSD,1.1,1.1\n"
        trade = accepted(parse_export(text, "h.csv", hashtags=["mt4", "imported"], now=NOW))[0]
        self.assertEqual(trade.hashtags, ["mt4", "imported"])

    def test_unsupported_extension(self) -> None:
        with self.assertRaises(UnsupportedFormatError):
            parse_export("whatever", "history.txt", now=NOW)
        with self.assertRaises(ImportFormatError):
            parse_export("whatever", "history", now=NOW)


if __name__ == '__main__':
    unittest.main()
