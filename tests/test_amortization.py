"""Tests for the annuity schedule calculator."""
import unittest
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from loanbook.data_structures import InstallmentStatus
from loanbook.exceptions import InvalidLoanTermsError
from loanbook.services.amortization import AmortizationCalculator, generate_schedule


class TestScheduleTotals(unittest.TestCase):
    """Principal retirement across a range of loans."""

    CASES = [
        (Decimal("500000"), 24, Decimal("12.5")),
        (Decimal("10000"), 6, Decimal("0")),
        (Decimal("123456.78"), 60, Decimal("19.9")),
        (Decimal("5000000"), 60, Decimal("3.25")),
        (Decimal("1000"), 1, Decimal("5")),
        (Decimal("10000"), 7, Decimal("0")),
    ]

    def setUp(self):
        self.calc = AmortizationCalculator()

    def test_principal_portions_sum_to_principal(self):
        """Test that principal portions add back up to the loan amount."""
        for principal, term, rate in self.CASES:
            with self.subTest(principal=principal, term=term, rate=rate):
                schedule = self.calc.generate(principal, term, rate, date(2024, 1, 15))
                total = sum(i.principal for i in schedule)
                self.assertLessEqual(abs(total - principal), Decimal("0.01"))

    def test_final_balance_is_exactly_zero(self):
        """Test that the last installment leaves nothing owing."""
        for principal, term, rate in self.CASES:
            with self.subTest(principal=principal, term=term, rate=rate):
                schedule = self.calc.generate(principal, term, rate, date(2024, 1, 15))
                self.assertEqual(schedule[-1].remaining_balance, Decimal("0"))

    def test_balance_never_increases(self):
        """Test that the remaining balance is monotonically non-increasing."""
        schedule = self.calc.generate(Decimal("123456.78"), 60, Decimal("19.9"), date(2024, 1, 15))
        balances = [i.remaining_balance for i in schedule]
        self.assertEqual(balances, sorted(balances, reverse=True))
        self.assertTrue(all(b >= 0 for b in balances))

    def test_payment_splits_into_principal_and_interest(self):
        """Test that principal + interest equals the payment on every row."""
        schedule = self.calc.generate(Decimal("500000"), 24, Decimal("12.5"), date(2024, 1, 15))
        for inst in schedule:
            self.assertEqual(inst.principal + inst.interest, inst.payment)

    def test_level_payment_except_last(self):
        """Test that all but the final installment share one payment amount."""
        schedule = self.calc.generate(Decimal("500000"), 24, Decimal("12.5"), date(2024, 1, 15))
        payments = {i.payment for i in schedule.installments[:-1]}
        self.assertEqual(len(payments), 1)
        self.assertLessEqual(abs(schedule[-1].payment - schedule[0].payment), Decimal("0.25"))


class TestReferenceLoan(unittest.TestCase):
    """500 000 over 24 months at 12.5%."""

    def setUp(self):
        self.schedule = generate_schedule(Decimal("500000"), 24, Decimal("12.5"), date(2024, 1, 15))

    def test_first_month_interest(self):
        """Test that the first interest charge is 500000 * 12.5 / 1200."""
        self.assertEqual(self.schedule[0].interest, Decimal("5208.33"))

    def test_payment_matches_annuity_formula(self):
        """Test that the level payment reproduces the annuity formula to the cent."""
        r = Decimal("12.5") / 100 / 12
        factor = (1 + r) ** 24
        expected = (Decimal("500000") * r * factor / (factor - 1)).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP)
        self.assertEqual(self.schedule[0].payment, expected)
        self.assertEqual(self.schedule.monthly_payment, expected)

    def test_first_principal_portion(self):
        """Test that principal is the payment less interest."""
        first = self.schedule[0]
        self.assertEqual(first.principal, first.payment - Decimal("5208.33"))
        self.assertEqual(first.remaining_balance, Decimal("500000") - first.principal)


class TestZeroRate(unittest.TestCase):

    def test_straight_line_repayment(self):
        """Test that a 0% loan repays principal / term with no interest."""
        schedule = generate_schedule(Decimal("120000"), 12, Decimal("0"), date(2024, 1, 1))
        for inst in schedule:
            self.assertEqual(inst.payment, Decimal("10000.00"))
            self.assertEqual(inst.interest, Decimal("0"))
        self.assertEqual(schedule[-1].remaining_balance, Decimal("0"))

    def test_uneven_division_lands_on_last_installment(self):
        """Test that the rounding remainder is absorbed by the final installment."""
        schedule = generate_schedule(Decimal("10000"), 6, Decimal("0"), date(2024, 1, 1))
        self.assertEqual(schedule[0].payment, Decimal("1666.67"))
        self.assertEqual(schedule[-1].payment, Decimal("1666.65"))
        self.assertEqual(sum(i.payment for i in schedule), Decimal("10000"))


class TestDueDates(unittest.TestCase):

    def setUp(self):
        self.calc = AmortizationCalculator()

    def test_due_dates_fall_on_billing_day(self):
        """Test that every due date is the 28th of consecutive months."""
        schedule = self.calc.generate(Decimal("50000"), 12, Decimal("12.5"), date(2024, 1, 31))
        self.assertEqual(schedule[0].due_date, date(2024, 2, 28))
        self.assertEqual(schedule[1].due_date, date(2024, 3, 28))
        self.assertEqual(schedule[-1].due_date, date(2025, 1, 28))
        self.assertTrue(all(i.due_date.day == 28 for i in schedule))

    def test_due_dates_roll_over_year_end(self):
        """Test that months wrap into the next year."""
        schedule = self.calc.generate(Decimal("50000"), 3, Decimal("12.5"), date(2024, 11, 15))
        self.assertEqual([i.due_date for i in schedule],
                         [date(2024, 12, 28), date(2025, 1, 28), date(2025, 2, 28)])

    def test_sequence_is_contiguous_and_ordered(self):
        """Test sequence numbers 1..term increasing with due date."""
        schedule = self.calc.generate(Decimal("50000"), 18, Decimal("9"), date(2024, 5, 2))
        self.assertEqual([i.sequence for i in schedule], list(range(1, 19)))
        dates = [i.due_date for i in schedule]
        self.assertEqual(dates, sorted(dates))
        self.assertEqual(len(set(dates)), 18)

    def test_datetime_start_is_accepted(self):
        """Test that a datetime start date is reduced to its date."""
        schedule = self.calc.generate(Decimal("50000"), 2, Decimal("9"), datetime(2024, 5, 2, 17, 30))
        self.assertEqual(schedule.terms.start_date, date(2024, 5, 2))
        self.assertEqual(schedule[0].due_date, date(2024, 6, 28))


class TestInitialState(unittest.TestCase):

    def test_installments_start_pending(self):
        """Test that new installments carry no payments or penalties."""
        schedule = generate_schedule(Decimal("50000"), 6, Decimal("12.5"), date(2024, 1, 1))
        for inst in schedule:
            self.assertEqual(inst.status, InstallmentStatus.PENDING)
            self.assertEqual(inst.paid_amount, Decimal("0"))
            self.assertIsNone(inst.paid_date)
            self.assertEqual(inst.penalty, Decimal("0"))
            self.assertEqual(inst.penalty_days, 0)

    def test_terms_are_recorded(self):
        """Test that the schedule keeps the terms it was generated from."""
        schedule = generate_schedule(1000.5, 6, 12.5, date(2024, 1, 1))
        self.assertEqual(schedule.terms.principal, Decimal("1000.5"))
        self.assertEqual(schedule.terms.annual_rate, Decimal("12.5"))
        self.assertEqual(schedule.terms.term_months, 6)


class TestInvalidTerms(unittest.TestCase):

    def test_rejects_bad_terms(self):
        """Test that structurally invalid terms raise InvalidLoanTermsError."""
        bad = [
            (0, 12, 10, date(2024, 1, 1)),
            (-100, 12, 10, date(2024, 1, 1)),
            (1000, 0, 10, date(2024, 1, 1)),
            (1000, 1.5, 10, date(2024, 1, 1)),
            (1000, True, 10, date(2024, 1, 1)),
            (1000, 12, -1, date(2024, 1, 1)),
            (1000, 12, 10, "2024-01-01"),
            ("abc", 12, 10, date(2024, 1, 1)),
            (Decimal("NaN"), 12, 10, date(2024, 1, 1)),
        ]
        for args in bad:
            with self.subTest(args=args):
                with self.assertRaises(InvalidLoanTermsError):
                    generate_schedule(*args)

    def test_error_carries_details(self):
        """Test that the error message names the offending field."""
        with self.assertRaises(InvalidLoanTermsError) as ctx:
            generate_schedule(-5, 12, 10, date(2024, 1, 1))
        self.assertIn("principal", str(ctx.exception))
        self.assertEqual(ctx.exception.details["principal"], "-5")


if __name__ == '__main__':
    unittest.main()
