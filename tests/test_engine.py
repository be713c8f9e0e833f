"""Tests for the LoanEngine facade, settings, logging and result helpers."""
import json
import logging
import os
import unittest
from datetime import date
from decimal import Decimal
from unittest.mock import patch

from loanbook.config import DEFAULT_DB_NAME, EngineSettings, PENALTY_SWEEP_INTERVAL_SECONDS
from loanbook.database import DatabaseManager
from loanbook.engine import LoanEngine
from loanbook.exceptions import InvalidAmountError, LoanBookError, LoanLimitError
from loanbook.logging import JsonFormatter, setup_logging
from loanbook.result import ErrorType, Result


class TestLoanEngine(unittest.TestCase):

    def setUp(self):
        self.engine = LoanEngine(DatabaseManager(":memory:"), EngineSettings(sweep_interval_seconds=0.05))

    def tearDown(self):
        self.engine.shutdown()

    def test_payment_returns_confirmation(self):
        """Test that make_payment returns the result and its confirmation text."""
        loan_id = self.engine.issue_loan(Decimal("60000"), 6, date(2024, 1, 10), annual_rate=0)
        result, message = self.engine.make_payment(loan_id, Decimal("12000"), date(2024, 2, 28))

        self.assertEqual(result.settled_sequences, [1])
        self.assertEqual(
            message,
            "Installment #1 fully settled. Paid 2,000.00. Remaining on installment #2: 8,000.00."
        )
        self.assertEqual(len(self.engine.get_payments_df(loan_id)), 1)

    def test_services_shared(self):
        """Test that the facade hands out one service and one lock registry."""
        self.assertIs(self.engine.loan_service, self.engine.loan_service)
        self.assertIs(self.engine.loan_service.locks, self.engine.locks)
        self.assertIs(self.engine.report.penalty_engine, self.engine.loan_service.penalty_engine)

    def test_summary_and_schedule(self):
        """Test the read-only views through the facade."""
        loan_id = self.engine.issue_loan(Decimal("60000"), 6, date(2024, 1, 10), annual_rate=0)
        summary = self.engine.get_summary(loan_id, date(2024, 3, 9))
        self.assertEqual(summary.total_penalty, Decimal("100.00"))
        self.assertEqual(len(self.engine.get_schedule_df(loan_id)), 6)

    def test_sweeper_started_and_stopped(self):
        """Test that the background sweeper runs until shutdown."""
        self.engine.start_penalty_sweeper()
        self.assertTrue(self.engine.sweeper.running)
        self.engine.sweeper.stop()
        self.assertFalse(self.engine.sweeper.running)

    def test_limits_through_facade(self):
        """Test limit checks and enforcement via the facade."""
        self.assertEqual(self.engine.check_loan_limits(100, 12).error_type, ErrorType.LIMIT)
        with self.assertRaises(LoanLimitError):
            self.engine.issue_loan(Decimal("100"), 12)


class TestEngineSettings(unittest.TestCase):

    def test_defaults(self):
        """Test the settings used when nothing is configured."""
        with patch.dict(os.environ, {}, clear=True):
            settings = EngineSettings.from_env()
        self.assertEqual(settings.db_name, DEFAULT_DB_NAME)
        self.assertEqual(settings.sweep_interval_seconds, PENALTY_SWEEP_INTERVAL_SECONDS)
        self.assertEqual(settings.log_level, "INFO")

    def test_environment_overrides(self):
        """Test that environment variables override the defaults."""
        env = {
            "LOANBOOK_DB": "/tmp/book.db",
            "LOANBOOK_SWEEP_INTERVAL": "90",
            "LOG_LEVEL": "DEBUG",
            "LOG_FORMAT": "json",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = EngineSettings.from_env()
        self.assertEqual(settings.db_name, "/tmp/book.db")
        self.assertEqual(settings.sweep_interval_seconds, 90.0)
        self.assertEqual(settings.log_level, "DEBUG")
        self.assertEqual(settings.log_format, "json")


class TestLogging(unittest.TestCase):

    def setUp(self):
        root = logging.getLogger()
        self._handlers = root.handlers[:]
        self._level = root.level

    def tearDown(self):
        root = logging.getLogger()
        root.handlers = self._handlers
        root.setLevel(self._level)
        logging.getLogger("loanbook").setLevel(logging.NOTSET)

    def test_setup_logging_levels(self):
        """Test that setup_logging installs one handler at the given level."""
        setup_logging("warning")
        root = logging.getLogger()
        self.assertEqual(len(root.handlers), 1)
        self.assertEqual(root.level, logging.WARNING)
        self.assertEqual(logging.getLogger("loanbook").level, logging.WARNING)

    def test_json_format(self):
        """Test that the JSON formatter carries loan context fields."""
        setup_logging("INFO", "json")
        self.assertIsInstance(logging.getLogger().handlers[0].formatter, JsonFormatter)

        record = logging.LogRecord("loanbook.test", logging.INFO, __file__, 1,
                                   "Payment on loan %s", (7,), None)
        record.loan_id = 7
        record.amount = Decimal("10.50")
        data = json.loads(JsonFormatter().format(record))
        self.assertEqual(data["message"], "Payment on loan 7")
        self.assertEqual(data["level"], "INFO")
        self.assertEqual(data["loan_id"], "7")
        self.assertEqual(data["amount"], "10.50")
        self.assertNotIn("installment", data)


class TestErrorsAndResults(unittest.TestCase):

    def test_error_details(self):
        """Test that errors carry a message and a details dict."""
        err = InvalidAmountError(Decimal("-5"))
        self.assertIsInstance(err, LoanBookError)
        self.assertEqual(err.details, {'amount': '-5'})
        self.assertIn("must be positive", str(err))

        self.assertEqual(str(LoanBookError("plain")), "plain")

    def test_result_helpers(self):
        """Test Result construction and unwrapping."""
        ok = Result.ok(3)
        self.assertTrue(ok)
        self.assertEqual(ok.unwrap(), 3)

        failed = Result.from_error(InvalidAmountError(0), ErrorType.VALIDATION)
        self.assertFalse(failed)
        self.assertEqual(failed.error, "Payment amount must be positive, got 0")
        self.assertEqual(failed.unwrap_or("fallback"), "fallback")
        with self.assertRaises(ValueError):
            failed.unwrap()


if __name__ == '__main__':
    unittest.main()
