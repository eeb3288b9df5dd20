"""Yearly expense records grown from a base year.

Pure functions. No I/O.
"""

import logging
from dataclasses import replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from immotax.engine.debt import investment_loan_year, investment_schedule, with_loan_figures
from immotax.models.investment import (
    EXPENSE_MONEY_FIELDS,
    ExpenseProjection,
    Investment,
    YearlyExpense,
)
from immotax.models.results import AmortizationSchedule

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

# Filled from the amortization schedule or recomputed by the engine
_NOT_GROWN = {"loan_payment", "loan_insurance", "interest", "tax", "deficit"}


def projected_value(base: Decimal, rate: Decimal, years: int) -> Decimal:
    """base * (1 + rate/100)^years. Years before the base year are not discounted."""
    growth = (1 + rate / 100) ** max(0, years)
    return (base * growth).quantize(TWO_PLACES, ROUND_HALF_UP)


def project_year(projection: ExpenseProjection, year: int) -> YearlyExpense:
    """Full-year figures for `year`, before any loan or prorata adjustment."""
    elapsed = year - projection.base_year
    grown = {
        name: projected_value(getattr(projection.base, name), projection.rate_for(name), elapsed)
        for name in EXPENSE_MONEY_FIELDS
        if name not in _NOT_GROWN
    }
    return replace(projection.base, year=year, **grown)


def project_expenses(
    investment: Investment,
    schedule: Optional[AmortizationSchedule] = None,
) -> tuple[YearlyExpense, ...]:
    """One record per project year.

    Years the investor entered are kept as entered; the others are grown from
    the projection base. Loan columns come from the amortization schedule.
    Without a projection the entered records are returned unchanged.
    """
    projection = investment.expense_projection
    if projection is None:
        return investment.expenses

    schedule = schedule if schedule is not None else investment_schedule(investment)
    entered = {e.year: e for e in investment.expenses}
    records = []
    for year in investment.project_years:
        if year in entered:
            records.append(entered[year])
            continue
        record = project_year(projection, year)
        if schedule.rows:
            record = with_loan_figures(record, investment_loan_year(investment, year, schedule))
        records.append(record)

    logger.debug(
        "Projected %s of %s years for %s",
        len(records) - len(entered), len(records), investment.id or investment.name,
    )
    return tuple(records)


def with_projected_expenses(
    investment: Investment, schedule: Optional[AmortizationSchedule] = None
) -> Investment:
    return replace(investment, expenses=project_expenses(investment, schedule))
