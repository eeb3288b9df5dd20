from dataclasses import replace
from datetime import date
from decimal import Decimal

from immotax.engine.debt import (
    amortization_schedule,
    investment_loan_year,
    investment_schedule,
    loan_year,
    monthly_insurance,
    monthly_payment,
    remaining_balance_at,
    with_loan_figures,
    yearly_loan_summary,
)
from immotax.models.investment import DeferralType, YearlyExpense

START = date(2024, 1, 1)


class TestMonthlyPayment:
    def test_standard_loan(self):
        pmt = monthly_payment(Decimal("200000"), Decimal("3"), 240)
        assert pmt == Decimal("1109.20")

    def test_zero_rate(self):
        assert monthly_payment(Decimal("200000"), Decimal("0"), 240) == Decimal("0")

    def test_zero_principal(self):
        assert monthly_payment(Decimal("0"), Decimal("3"), 240) == Decimal("0")

    def test_insurance_on_initial_capital(self):
        assert monthly_insurance(Decimal("200000"), Decimal("0.36")) == Decimal("60.00")


class TestAmortizationSchedule:
    def test_payment_count(self):
        schedule = amortization_schedule(Decimal("200000"), Decimal("3"), 20, start_date=START)
        assert len(schedule.rows) == 240

    def test_first_row_interest(self):
        """200000 * 3% / 12 = 500."""
        schedule = amortization_schedule(Decimal("200000"), Decimal("3"), 20, start_date=START)
        first = schedule.rows[0]
        assert first.interest == Decimal("500.00")
        assert first.principal == schedule.monthly_payment - Decimal("500.00")

    def test_final_balance_is_zero(self):
        schedule = amortization_schedule(Decimal("200000"), Decimal("3"), 20, start_date=START)
        assert schedule.final_balance == Decimal("0")

    def test_principal_sums_to_loan(self):
        schedule = amortization_schedule(Decimal("200000"), Decimal("3"), 20, start_date=START)
        total = sum(row.principal for row in schedule.rows)
        assert abs(total - Decimal("200000")) <= Decimal("0.01")
        assert schedule.total_principal == total

    def test_balance_decreases_and_never_negative(self):
        schedule = amortization_schedule(Decimal("150000"), Decimal("4.2"), 15, start_date=START)
        for prev, row in zip(schedule.rows, schedule.rows[1:]):
            assert row.remaining_balance < prev.remaining_balance
            assert row.remaining_balance >= 0

    def test_interest_from_previous_balance(self):
        schedule = amortization_schedule(Decimal("200000"), Decimal("3"), 20, start_date=START)
        for prev, row in zip(schedule.rows, schedule.rows[1:]):
            expected = (prev.remaining_balance * Decimal("0.0025")).quantize(Decimal("0.01"))
            assert abs(row.interest - expected) <= Decimal("0.01")

    def test_monthly_dates(self):
        schedule = amortization_schedule(
            Decimal("100000"), Decimal("3"), 1, start_date=date(2024, 1, 31)
        )
        assert schedule.rows[0].date == date(2024, 1, 31)
        assert schedule.rows[1].date == date(2024, 2, 29)
        assert schedule.rows[11].date == date(2024, 12, 31)

    def test_degenerate_inputs_give_empty_schedule(self):
        for principal, rate, years in [
            (Decimal("0"), Decimal("3"), 20),
            (Decimal("200000"), Decimal("0"), 20),
            (Decimal("200000"), Decimal("3"), 0),
            (Decimal("-5"), Decimal("3"), 20),
        ]:
            schedule = amortization_schedule(principal, rate, years, start_date=START)
            assert schedule.rows == ()
            assert schedule.monthly_payment == Decimal("0")


class TestDeferral:
    def test_partial_pays_interest_only(self):
        schedule = amortization_schedule(
            Decimal("200000"), Decimal("3"), 20, DeferralType.PARTIAL, 12, START
        )
        assert len(schedule.rows) == 240
        for row in schedule.rows[:12]:
            assert row.is_deferred
            assert row.principal == Decimal("0")
            assert row.payment == row.interest == Decimal("500.00")
            assert row.remaining_balance == Decimal("200000.00")
        assert schedule.deferred_interest == Decimal("0")

    def test_partial_payment_solved_on_remaining_months(self):
        schedule = amortization_schedule(
            Decimal("200000"), Decimal("3"), 20, DeferralType.PARTIAL, 12, START
        )
        assert schedule.monthly_payment == monthly_payment(Decimal("200000"), Decimal("3"), 228)
        assert schedule.final_balance == Decimal("0")
        assert abs(schedule.total_principal - Decimal("200000")) <= Decimal("0.01")

    def test_total_capitalizes_interest(self):
        schedule = amortization_schedule(
            Decimal("200000"), Decimal("3"), 20, DeferralType.TOTAL, 12, START
        )
        deferred = schedule.rows[:12]
        assert all(row.payment == Decimal("0") for row in deferred)
        assert deferred[1].remaining_balance > deferred[0].remaining_balance
        assert schedule.deferred_interest == sum(row.interest for row in deferred)
        assert deferred[-1].remaining_balance == Decimal("200000") + schedule.deferred_interest

    def test_total_payment_solved_on_capitalized_balance(self):
        schedule = amortization_schedule(
            Decimal("200000"), Decimal("3"), 20, DeferralType.TOTAL, 12, START
        )
        capitalized = Decimal("200000") + schedule.deferred_interest
        assert schedule.monthly_payment == monthly_payment(capitalized, Decimal("3"), 228)
        assert schedule.final_balance == Decimal("0")
        assert abs(schedule.total_principal - capitalized) <= Decimal("0.01")

    def test_deferral_clamped_to_leave_one_payment(self):
        schedule = amortization_schedule(
            Decimal("10000"), Decimal("3"), 1, DeferralType.PARTIAL, 1000, START
        )
        assert len(schedule.rows) == 12
        assert sum(1 for row in schedule.rows if row.is_deferred) == 11
        assert schedule.final_balance == Decimal("0")

    def test_deferral_ignored_without_deferral_type(self):
        schedule = amortization_schedule(
            Decimal("200000"), Decimal("3"), 20, DeferralType.NONE, 12, START
        )
        assert not any(row.is_deferred for row in schedule.rows)


class TestLoanYear:
    def test_full_year(self):
        schedule = amortization_schedule(Decimal("200000"), Decimal("3"), 20, start_date=START)
        year = loan_year(schedule, 2024)
        assert year.payment == schedule.monthly_payment * 12
        assert year.interest + year.principal == year.payment

    def test_window_restricts_rows(self):
        schedule = amortization_schedule(Decimal("200000"), Decimal("3"), 20, start_date=START)
        half = loan_year(schedule, 2024, window_start=date(2024, 7, 1))
        assert half.payment == schedule.monthly_payment * 6

    def test_year_outside_schedule(self):
        schedule = amortization_schedule(Decimal("200000"), Decimal("3"), 20, start_date=START)
        assert loan_year(schedule, 2050).payment == Decimal("0")

    def test_yearly_summary_totals(self):
        schedule = amortization_schedule(Decimal("200000"), Decimal("3"), 20, start_date=START)
        summary = yearly_loan_summary(schedule)
        assert len(summary) == 20
        assert sum(y.interest for y in summary) == schedule.total_interest
        assert sum(y.principal for y in summary) == schedule.total_principal

    def test_investment_loan_year_with_insurance(self, bare_investment):
        insured = replace(bare_investment, insurance_rate=Decimal("0.30"))
        year = investment_loan_year(insured, 2024)
        assert year.insurance == Decimal("45.00") * 12

    def test_with_loan_figures(self, bare_investment):
        year = investment_loan_year(bare_investment, 2024)
        expense = with_loan_figures(YearlyExpense(year=2024, rent=Decimal("12000")), year)
        assert expense.rent == Decimal("12000")
        assert expense.loan_payment == year.payment
        assert expense.interest == year.interest


class TestRemainingBalance:
    def test_before_first_row(self):
        schedule = amortization_schedule(Decimal("200000"), Decimal("3"), 20, start_date=START)
        assert remaining_balance_at(schedule, date(2023, 6, 1)) == Decimal("200000")

    def test_after_twelve_rows(self):
        schedule = amortization_schedule(Decimal("200000"), Decimal("3"), 20, start_date=START)
        assert remaining_balance_at(schedule, date(2024, 12, 31)) == schedule.rows[11].remaining_balance

    def test_after_schedule_end(self):
        schedule = amortization_schedule(Decimal("200000"), Decimal("3"), 20, start_date=START)
        assert remaining_balance_at(schedule, date(2060, 1, 1)) == Decimal("0")

    def test_total_deferral_includes_capitalized_interest(self):
        schedule = amortization_schedule(
            Decimal("200000"), Decimal("3"), 20, DeferralType.TOTAL, 12, START
        )
        balance = remaining_balance_at(schedule, date(2024, 12, 31))
        assert balance == Decimal("200000") + schedule.deferred_interest
        assert remaining_balance_at(schedule, date(2023, 12, 31)) == Decimal("200000")

    def test_empty_schedule(self):
        schedule = amortization_schedule(Decimal("0"), Decimal("3"), 20, start_date=START)
        assert remaining_balance_at(schedule, START) == Decimal("0")

    def test_investment_schedule_starts_with_project(self, bare_investment):
        schedule = investment_schedule(bare_investment)
        assert schedule.rows[0].date == bare_investment.project_start_date
        assert len(schedule.rows) == 240
