"""Database management module for LoanBook.

Money columns are TEXT so Decimal amounts survive a round trip exactly.
"""
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal

import pandas as pd

from loanbook.config import DATE_FORMAT_STORAGE
from loanbook.data_structures import Installment, InstallmentStatus, LoanTerms, Schedule
from loanbook.exceptions import DatabaseError, LoanNotFoundError, TransactionError


def _date_str(value):
    return value.strftime(DATE_FORMAT_STORAGE) if value else None


def _parse_date(value):
    return datetime.strptime(value, DATE_FORMAT_STORAGE).date() if value else None


class DatabaseManager:
    """Handles all SQLite database operations.

    One connection is shared by the request path and the sweeper thread;
    ``_lock`` serialises access to it.
    """

    def __init__(self, db_name="loanbook.db"):
        self.db_name = db_name
        try:
            self.conn = sqlite3.connect(db_name, check_same_thread=False)
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot open database: {e}", {'db_name': db_name})
        self._lock = threading.RLock()
        self._closed = False
        self.create_tables()

    def close(self):
        """Close the database connection."""
        if self.conn and not self._closed:
            self.conn.close()
            self._closed = True

    def __del__(self):
        """Ensure connection is closed on garbage collection."""
        if hasattr(self, '_closed'):
            self.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @contextmanager
    def transaction(self):
        """Context manager for database transactions with automatic rollback on failure.

        Usage:
            with db.transaction():
                db.save_schedule(...)
                db.add_payment_record(...)

        Writes made inside the block are committed together. Any exception
        rolls them back; sqlite errors are re-raised as TransactionError.
        Nested blocks join the outermost one.
        """
        with self._lock:
            self._tx_depth += 1
            outermost = self._tx_depth == 1
            try:
                yield
                if outermost:
                    self.conn.commit()
            except sqlite3.Error as e:
                if outermost:
                    self.conn.rollback()
                raise TransactionError(f"Transaction failed: {str(e)}")
            except Exception:
                if outermost:
                    self.conn.rollback()
                raise
            finally:
                self._tx_depth -= 1

    _tx_depth = 0

    def _commit(self):
        # Inside transaction() the commit happens when the outermost block exits
        if not self._tx_depth:
            self.conn.commit()

    def create_tables(self):
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS loans (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    borrower TEXT,
                    principal TEXT NOT NULL,
                    term_months INTEGER NOT NULL,
                    interest_rate TEXT NOT NULL,
                    monthly_payment TEXT NOT NULL,
                    total_amount TEXT NOT NULL,
                    start_date TEXT NOT NULL,
                    status TEXT DEFAULT 'active',
                    created_at TEXT
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS payment_schedule (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    loan_id INTEGER NOT NULL,
                    payment_number INTEGER NOT NULL,
                    due_date TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    principal TEXT NOT NULL,
                    interest TEXT NOT NULL,
                    remaining_balance TEXT NOT NULL,
                    status TEXT DEFAULT 'pending',
                    paid_amount TEXT DEFAULT '0',
                    paid_date TEXT,
                    penalty TEXT DEFAULT '0',
                    penalty_days INTEGER DEFAULT 0,
                    settled_penalty TEXT DEFAULT '0',
                    UNIQUE(loan_id, payment_number),
                    FOREIGN KEY(loan_id) REFERENCES loans(id)
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS payments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    loan_id INTEGER NOT NULL,
                    amount TEXT NOT NULL,
                    applied TEXT NOT NULL,
                    returned TEXT DEFAULT '0',
                    payment_date TEXT NOT NULL,
                    notes TEXT,
                    FOREIGN KEY(loan_id) REFERENCES loans(id)
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)
            self.conn.commit()

    # Loan operations
    def add_loan_record(self, terms: LoanTerms, monthly_payment, total_amount, borrower=None):
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("""
                INSERT INTO loans (
                    borrower, principal, term_months, interest_rate, monthly_payment,
                    total_amount, start_date, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (borrower, str(terms.principal), terms.term_months, str(terms.annual_rate),
                  str(monthly_payment), str(total_amount), _date_str(terms.start_date),
                  datetime.now().strftime("%Y-%m-%d %H:%M:%S")))
            self._commit()
            return cursor.lastrowid

    def get_loan(self, loan_id):
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM loans WHERE id=?", (loan_id,))
            row = cursor.fetchone()
            if row:
                cols = [description[0] for description in cursor.description]
                return dict(zip(cols, row))
            return None

    def get_loans(self):
        """Get ALL loans (active and closed)."""
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM loans ORDER BY id")
            cols = [description[0] for description in cursor.description]
            return [dict(zip(cols, row)) for row in cursor.fetchall()]

    def get_active_loan_ids(self):
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("SELECT id FROM loans WHERE status='active' ORDER BY id")
            return [row[0] for row in cursor.fetchall()]

    def update_loan_status(self, loan_id, status):
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("UPDATE loans SET status=? WHERE id=?", (status, loan_id))
            self._commit()

    def get_loan_terms(self, loan_id) -> LoanTerms:
        loan = self.get_loan(loan_id)
        if not loan:
            raise LoanNotFoundError(loan_id)
        return LoanTerms(
            principal=Decimal(loan['principal']),
            term_months=loan['term_months'],
            annual_rate=Decimal(loan['interest_rate']),
            start_date=_parse_date(loan['start_date']),
        )

    # Schedule operations
    def save_schedule(self, loan_id, schedule: Schedule):
        """Replace the stored schedule of a loan with ``schedule``."""
        rows = [
            (loan_id, inst.sequence, _date_str(inst.due_date), str(inst.payment),
             str(inst.principal), str(inst.interest), str(inst.remaining_balance),
             inst.status.value, str(inst.paid_amount), _date_str(inst.paid_date),
             str(inst.penalty), inst.penalty_days, str(inst.settled_penalty))
            for inst in schedule
        ]
        with self.transaction():
            cursor = self.conn.cursor()
            cursor.execute("DELETE FROM payment_schedule WHERE loan_id=?", (loan_id,))
            cursor.executemany("""
                INSERT INTO payment_schedule (
                    loan_id, payment_number, due_date, amount, principal, interest,
                    remaining_balance, status, paid_amount, paid_date, penalty,
                    penalty_days, settled_penalty
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, rows)

    def load_schedule(self, loan_id) -> Schedule:
        """Rebuild a loan's Schedule; empty if none is stored.

        Raises:
            LoanNotFoundError: If the loan does not exist.
        """
        terms = self.get_loan_terms(loan_id)
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("""
                SELECT payment_number, due_date, amount, principal, interest,
                       remaining_balance, status, paid_amount, paid_date, penalty,
                       penalty_days, settled_penalty
                FROM payment_schedule WHERE loan_id=? ORDER BY payment_number
            """, (loan_id,))
            rows = cursor.fetchall()

        installments = [
            Installment(
                sequence=row[0],
                due_date=_parse_date(row[1]),
                payment=Decimal(row[2]),
                principal=Decimal(row[3]),
                interest=Decimal(row[4]),
                remaining_balance=Decimal(row[5]),
                status=InstallmentStatus(row[6]),
                paid_amount=Decimal(row[7]),
                paid_date=_parse_date(row[8]),
                penalty=Decimal(row[9]),
                penalty_days=row[10],
                settled_penalty=Decimal(row[11]),
            )
            for row in rows
        ]
        return Schedule(terms=terms, installments=installments)

    def get_schedule_df(self, loan_id):
        query = """
            SELECT payment_number, due_date, amount, principal, interest, remaining_balance,
                   status, paid_amount, paid_date, penalty, penalty_days
            FROM payment_schedule WHERE loan_id = ? ORDER BY payment_number
        """
        with self._lock:
            return pd.read_sql_query(query, self.conn, params=(loan_id,))

    # Payment history
    def add_payment_record(self, loan_id, amount, applied, returned, payment_date, notes=""):
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("""
                INSERT INTO payments (loan_id, amount, applied, returned, payment_date, notes)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (loan_id, str(amount), str(applied), str(returned), _date_str(payment_date), notes))
            self._commit()
            return cursor.lastrowid

    def get_payments_df(self, loan_id):
        query = "SELECT * FROM payments WHERE loan_id = ? ORDER BY payment_date, id"
        with self._lock:
            return pd.read_sql_query(query, self.conn, params=(loan_id,))

    # Settings
    def get_setting(self, key, default=None):
        """Get a setting value."""
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("SELECT value FROM settings WHERE key=?", (key,))
            res = cursor.fetchone()
            return res[0] if res else default

    def set_setting(self, key, value):
        """Set a setting value."""
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)", (key, str(value)))
            self._commit()
