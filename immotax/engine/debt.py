"""Amortization schedule computation, with optional partial or total deferral.

Pure functions: Decimal in, dataclass out. No I/O.
"""

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from dateutil.relativedelta import relativedelta

from immotax.models.investment import DeferralType, Investment, YearlyExpense
from immotax.models.results import AmortizationRow, AmortizationSchedule, LoanYear

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def _q(amount: Decimal) -> Decimal:
    return amount.quantize(TWO_PLACES, ROUND_HALF_UP)


def monthly_rate(annual_rate: Decimal) -> Decimal:
    """Annual rate in percent -> monthly rate as a fraction."""
    return annual_rate / 12 / 100


def monthly_payment(principal: Decimal, annual_rate: Decimal, n_months: int) -> Decimal:
    """Fixed annuity payment: P * r * (1+r)^n / ((1+r)^n - 1)."""
    if principal <= 0 or annual_rate <= 0 or n_months <= 0:
        return ZERO

    r = monthly_rate(annual_rate)
    factor = (1 + r) ** n_months
    payment = principal * r * factor / (factor - 1)
    return _q(payment)


def monthly_insurance(principal: Decimal, insurance_rate: Decimal) -> Decimal:
    """Borrower insurance computed on the initial capital."""
    if principal <= 0 or insurance_rate <= 0:
        return ZERO
    return _q(principal * insurance_rate / 100 / 12)


def amortization_schedule(
    principal: Decimal,
    annual_rate: Decimal,
    duration_years: int,
    deferral_type: DeferralType = DeferralType.NONE,
    deferred_months: int = 0,
    start_date: Optional[date] = None,
    insurance_rate: Decimal = ZERO,
) -> AmortizationSchedule:
    """Generate the monthly schedule of a fixed-rate loan.

    Args:
        principal: Borrowed amount
        annual_rate: Annual interest rate in percent (3 for 3%)
        duration_years: Total duration, deferral included
        deferral_type: none, partial (interest only) or total (interest capitalized)
        deferred_months: Length of the deferral, clamped so at least one
            amortizing month remains
        start_date: Date of the first row; today when missing
        insurance_rate: Yearly borrower insurance in percent of the principal
    """
    if principal <= 0 or annual_rate <= 0 or duration_years <= 0:
        return AmortizationSchedule()

    n_months = duration_years * 12
    deferred = 0
    if deferral_type is not DeferralType.NONE:
        deferred = min(max(deferred_months, 0), n_months - 1)
        if deferred != deferred_months:
            logger.debug("Deferral clamped from %s to %s months", deferred_months, deferred)

    start = start_date or date.today()
    r = monthly_rate(annual_rate)
    insurance = monthly_insurance(principal, insurance_rate)

    rows: list[AmortizationRow] = []
    balance = _q(principal)
    deferred_interest = ZERO
    total_interest = ZERO
    total_principal = ZERO

    for month in range(1, deferred + 1):
        interest = _q(balance * r)
        total_interest += interest
        if deferral_type is DeferralType.TOTAL:
            # Capitalization: unpaid interest joins the balance
            deferred_interest += interest
            balance += interest
            payment = ZERO
        else:
            payment = interest

        rows.append(AmortizationRow(
            month=month,
            date=start + relativedelta(months=month - 1),
            payment=payment,
            principal=ZERO,
            interest=interest,
            insurance=insurance,
            remaining_balance=balance,
            is_deferred=True,
        ))

    pmt = monthly_payment(balance, annual_rate, n_months - deferred)

    for month in range(deferred + 1, n_months + 1):
        interest = _q(balance * r)
        principal_paid = pmt - interest

        # Final payment adjustment
        if month == n_months or principal_paid > balance:
            principal_paid = balance
            actual_payment = interest + principal_paid
        else:
            actual_payment = pmt

        balance -= principal_paid
        total_interest += interest
        total_principal += principal_paid

        rows.append(AmortizationRow(
            month=month,
            date=start + relativedelta(months=month - 1),
            payment=actual_payment,
            principal=principal_paid,
            interest=interest,
            insurance=insurance,
            remaining_balance=max(ZERO, balance),
        ))

    return AmortizationSchedule(
        rows=tuple(rows),
        monthly_payment=pmt,
        deferred_interest=deferred_interest,
        total_interest=total_interest,
        total_principal=total_principal,
    )


def investment_schedule(investment: Investment) -> AmortizationSchedule:
    return amortization_schedule(
        principal=investment.loan_amount,
        annual_rate=investment.interest_rate,
        duration_years=investment.loan_duration,
        deferral_type=investment.deferral_type,
        deferred_months=investment.deferred_period,
        start_date=investment.schedule_start_date,
        insurance_rate=investment.insurance_rate,
    )


def loan_year(
    schedule: AmortizationSchedule,
    year: int,
    window_start: Optional[date] = None,
    window_end: Optional[date] = None,
) -> LoanYear:
    """Sum the rows dated in `year`, restricted to the project window when given."""
    payment = principal = interest = insurance = ZERO
    for row in schedule.rows:
        if row.date.year != year:
            continue
        if window_start is not None and row.date < window_start:
            continue
        if window_end is not None and row.date > window_end:
            continue
        payment += row.payment
        principal += row.principal
        interest += row.interest
        insurance += row.insurance

    return LoanYear(
        year=year,
        payment=payment,
        principal=principal,
        interest=interest,
        insurance=insurance,
    )


def investment_loan_year(
    investment: Investment, year: int, schedule: Optional[AmortizationSchedule] = None
) -> LoanYear:
    schedule = schedule if schedule is not None else investment_schedule(investment)
    return loan_year(
        schedule, year, investment.project_start_date, investment.project_end_date
    )


def with_loan_figures(expense: YearlyExpense, loan: LoanYear) -> YearlyExpense:
    """Replace the loan columns of a yearly record with schedule-derived values."""
    return replace(
        expense,
        loan_payment=loan.payment,
        loan_insurance=loan.insurance,
        interest=loan.interest,
    )


def yearly_loan_summary(schedule: AmortizationSchedule) -> list[LoanYear]:
    """Aggregate the schedule by calendar year."""
    years = sorted({row.date.year for row in schedule.rows})
    return [loan_year(schedule, year) for year in years]


def remaining_balance_at(schedule: AmortizationSchedule, on_date: date) -> Decimal:
    """Outstanding balance after the last row dated on or before `on_date`.

    Capitalized deferral interest is part of the balance.
    """
    if not schedule.rows:
        return ZERO

    balance: Optional[Decimal] = None
    for row in schedule.rows:
        if row.date > on_date:
            break
        balance = row.remaining_balance

    if balance is None:
        # Before the first row: nothing repaid yet
        return schedule.total_principal - schedule.deferred_interest
    return balance
