"""Logging setup for LoanBook hosts.

Modules take a logger with ``get_logger(__name__)``; a host process calls
``setup_logging`` once at start-up (``LoanEngine.from_settings`` does it
from ``EngineSettings``). Loan context such as ``loan_id`` is passed with
``extra=`` so the JSON output can be filtered per loan.
"""
import json
import logging
import sys
from datetime import datetime, timezone

# Fields a caller may attach with ``extra=`` that the JSON output keeps
CONTEXT_FIELDS = ("loan_id", "installment", "amount")

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
TEXT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level="INFO", format_type="standard"):
    """Send LoanBook log records to stdout.

    Any handlers already on the root logger are replaced, so calling this
    twice does not duplicate output.

    Args:
        level: Level name, case-insensitive (unknown names fall back to INFO).
        format_type: "standard" for pipe-separated text, "json" for one
            JSON object per line.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    if format_type == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=TEXT_FORMAT, datefmt=TEXT_DATE_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
    root.addHandler(handler)
    root.setLevel(log_level)
    logging.getLogger("loanbook").setLevel(log_level)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with loan context fields when present."""

    def format(self, record):
        data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                # Decimal amounts are not JSON-serialisable
                data[key] = str(getattr(record, key))
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data)


def get_logger(name):
    """Return the logger for ``name`` (a module's ``__name__``)."""
    return logging.getLogger(name)
