import os
import sys
import tempfile

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from tradejournal.app import main
from tradejournal.storage.repository import JsonTradeRepository

import unittest


class TestCommandLine(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = self._tmp.name
        self.data_dir = os.path.join(self.dir, "data")
        self.config = os.path.join(self.dir, "config.yaml")
        with open(self.config, "w", encoding="utf-8") as fh:
            fh.write(
                "user_id: alice\n"
                "storage:\n"
                f"  data_dir: '{self.data_dir}'\n"
                "reporting:\n"
                f"  out_dir: '{os.path.join(self.dir, 'results')}'\n"
            )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _run(self, *argv) -> int:
        return main(["--config", self.config, *argv])

    def _stored(self, user="alice"):
        return JsonTradeRepository(os.path.join(self.data_dir, "trades.json")).list_for_user(user)

    def test_add_list_and_report(self) -> None:
        code = self._run("add", "--pair", "EUR/USD", "--type", "Buy", "--entry", "1.1000",
                         "--exit", "1.1050", "--lot", "1", "--date", "2024-03-05 09:00",
                         "--tags", "breakout,london")
        self.assertEqual(code, 0)
        trades = self._stored()
        self.assertEqual(len(trades), 1)
        self.assertEqual(trades[0].profit_loss, 500.00)
        self.assertTrue(os.path.exists(os.path.join(self.data_dir, "session_alice.json")))
        self.assertEqual(self._run("list", "--tag", "breakout"), 0)
        self.assertEqual(trades[0].account, "Main Trading")
        self.assertEqual(self._run("list", "--account", "Main Trading"), 0)
        self.assertEqual(self._run("report"), 0)
        self.assertTrue(os.path.exists(os.path.join(self.dir, "results", "summary.json")))

    def test_add_with_bad_number_fails(self) -> None:
        code = self._run("add", "--pair", "EUR/USD", "--type", "Buy", "--entry", "abc", "--lot", "1")
        self.assertEqual(code, 1)
        self.assertEqual(self._stored(), [])

    def test_import_and_delete_permissions(self) -> None:
        path = os.path.join(self.dir, "history.csv")
        with open(path, "w", encoding="utf-8") as fh:
            fh.write("1,2024.03.05 14:30,buy,1,EURUSD,1.1000,1.1050\n")
        self.assertEqual(self._run("import", path), 0)
        self.assertEqual(self._run("import", path), 0)
        trades = self._stored()
        self.assertEqual(len(trades), 1)
        self.assertEqual(trades[0].hashtags, ["imported"])

        trade_id = trades[0].id
        self.assertEqual(self._run("--user", "bob", "delete", trade_id), 1)
        self.assertEqual(len(self._stored()), 1)
        self.assertEqual(self._run("--user", "bob", "--admin", "delete", trade_id), 0)
        self.assertEqual(self._stored(), [])

    def test_missing_and_unsupported_files(self) -> None:
        self.assertEqual(self._run("import", os.path.join(self.dir, "missing.csv")), 1)
        path = os.path.join(self.dir, "history.txt")
        with open(path, "w", encoding="utf-8") as fh:
            fh.write("data")
        self.assertEqual(self._run("import", path), 1)

    def test_profit_loss_calculator(self) -> None:
        self.assertEqual(main(["pl", "100", "110", "1", "Buy", "AAPL"]), 0)


if __name__ == '__main__':
    unittest.main()
