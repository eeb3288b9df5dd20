"""Prorata temporis: share of a calendar year covered by a project window.

Pure functions. No I/O.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence

from immotax.models.investment import EXPENSE_MONEY_FIELDS, Investment, YearlyExpense

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")
ONE = Decimal("1")


def window_coverage(start: date, end: date, year: int) -> Decimal:
    """Fraction of `year` lying inside [start, end], counted in days (both ends included)."""
    first = max(start, date(year, 1, 1))
    last = min(end, date(year, 12, 31))
    if last < first:
        return ZERO

    days_in_year = (date(year + 1, 1, 1) - date(year, 1, 1)).days
    covered = (last - first).days + 1
    return min(ONE, max(ZERO, Decimal(covered) / Decimal(days_in_year)))


def year_coverage(investment: Investment, year: int) -> Decimal:
    return window_coverage(investment.project_start_date, investment.project_end_date, year)


def sci_year_coverage(properties: Sequence[Investment], year: int) -> Decimal:
    """Entity-level coverage: the SCI runs as soon as any one property is active."""
    return max((year_coverage(p, year) for p in properties), default=ZERO)


def is_partial_year(investment: Investment, year: int) -> bool:
    coverage = year_coverage(investment, year)
    return ZERO < coverage < ONE


def adjust_for_coverage(amount: Decimal, coverage: Decimal) -> Decimal:
    return (amount * coverage).quantize(TWO_PLACES, ROUND_HALF_UP)


def annualize(amount: Decimal, coverage: Decimal) -> Decimal:
    """Scale a partial-year figure back to a full year. Zero coverage gives zero."""
    if coverage <= 0:
        return ZERO
    return amount / coverage


def prorate_expense(expense: YearlyExpense, coverage: Decimal) -> YearlyExpense:
    if coverage == ONE:
        return expense
    scaled = {
        name: adjust_for_coverage(getattr(expense, name), coverage)
        for name in EXPENSE_MONEY_FIELDS
    }
    return replace(expense, **scaled)
