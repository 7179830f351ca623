import os
import sys
import math

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from tradejournal.journal.pnl import calc_profit_loss, classify_instrument, contract_size, pip_size, pips

import unittest


class TestInstrumentClassification(unittest.TestCase):
    def test_pattern_rules(self) -> None:
        cases = {
            "EUR/USD": "forex",
            "BTCUSDT": "crypto",
            "eth": "crypto",
            "2222.SR": "stock",
            "SPX500": "index",
            "TASI": "index",
            "XAUUSD": "commodity",
            "CL": "commodity",
            "AAPL": "stock",
            "EURUSD": "forex",
        }
        for hint, expected in cases.items():
            self.assertEqual(classify_instrument(hint), expected, msg=hint)

    def test_class_name_is_used_as_is(self) -> None:
        self.assertEqual(classify_instrument("Crypto"), "crypto")
        self.assertEqual(classify_instrument("other"), "other")

    def test_contract_sizes(self) -> None:
        self.assertEqual(contract_size("forex"), 100_000)
        self.assertEqual(contract_size("crypto"), 1)
        self.assertEqual(contract_size("stock"), 1)
        self.assertEqual(contract_size("commodity", "XAUUSD"), 100)
        self.assertEqual(contract_size("commodity", "XAGUSD"), 50)
        self.assertEqual(contract_size("commodity", "CL"), 1000)

    def test_pip_size(self) -> None:
        self.assertEqual(pip_size("USD/JPY"), 0.01)
        self.assertEqual(pip_size("EUR/USD"), 0.0001)
        self.assertAlmostEqual(pips(1.1000, 1.1050, "Buy", "EUR/USD"), 50.0)


class TestProfitLoss(unittest.TestCase):
    def test_forex_standard_lot(self) -> None:
        self.assertEqual(calc_profit_loss(1.1000, 1.1050, 1, "Buy", "EUR/USD"), 500.00)

    def test_stock_uses_lot_as_share_count(self) -> None:
        self.assertEqual(calc_profit_loss(100, 110, 1, "Buy", "AAPL"), 10.00)
        self.assertEqual(calc_profit_loss(100, 110, 5, "Buy", "AAPL"), 50.00)

    def test_buy_and_sell_are_opposite(self) -> None:
        for entry, exit_price, lot in [(1.25, 1.2, 0.5), (1.0921, 1.0987, 2), (150.1, 149.3, 0.1)]:
            buy = calc_profit_loss(entry, exit_price, lot, "Buy", "forex")
            sell = calc_profit_loss(entry, exit_price, lot, "Sell", "forex")
            self.assertEqual(buy, -sell)

    def test_sign_follows_direction(self) -> None:
        self.assertGreater(calc_profit_loss(1.2, 1.3, 1, "Buy", "GBP/USD"), 0)
        self.assertLess(calc_profit_loss(1.2, 1.3, 1, "Sell", "GBP/USD"), 0)
        self.assertGreater(calc_profit_loss(1.3, 1.2, 1, "Sell", "GBP/USD"), 0)

    def test_commodities_and_crypto(self) -> None:
        self.assertEqual(calc_profit_loss(2000, 2010, 1, "Buy", "XAUUSD"), 1000.00)
        self.assertEqual(calc_profit_loss(25, 24, 2, "Sell", "XAGUSD"), 100.00)
        self.assertEqual(calc_profit_loss(30000, 31000, 0.5, "Buy", "BTCUSD"), 500.00)

    def test_long_short_synonyms(self) -> None:
        self.assertEqual(calc_profit_loss(100, 90, 1, "short", "AAPL"), 10.00)
        self.assertEqual(calc_profit_loss(100, 90, 1, "long", "AAPL"), -10.00)

    def test_open_trade_is_zero(self) -> None:
        self.assertEqual(calc_profit_loss(1.1, None, 1, "Buy", "EUR/USD"), 0.0)

    def test_nan_propagates(self) -> None:
        self.assertTrue(math.isnan(calc_profit_loss(float("nan"), 1.1, 1, "Buy", "forex")))


if __name__ == '__main__':
    unittest.main()
