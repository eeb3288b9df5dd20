"""Yearly income tax under the four rental regimes.

Location nue: micro-foncier (flat 30% allowance) and réel foncier (actual
charges, capped deficit carried ten years). Location meublée (LMNP): micro-BIC
(flat 50% allowance) and réel BIC (actual charges plus straight-line
depreciation, excess depreciation carried without limit).

Carry-forward state is threaded explicitly: each year's TaxResult.carry is the
next year's input. build_tax_ledger folds the project years in order.

Pure functions: dataclasses in, dataclasses out. No I/O.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from functools import reduce
from typing import Callable, Mapping, Optional

from immotax.config import settings
from immotax.engine.debt import investment_loan_year, investment_schedule, with_loan_figures
from immotax.engine.prorata import adjust_for_coverage, annualize, prorate_expense, year_coverage
from immotax.models.investment import Investment, TaxParameters, TaxRegime, YearlyExpense
from immotax.models.results import (
    AmortizationSchedule,
    DeficitVintage,
    DepreciationBlock,
    TaxCarryForward,
    TaxResult,
    YearTaxEntry,
)

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")
ONE = Decimal("1")


def _q(amount: Decimal) -> Decimal:
    return amount.quantize(TWO_PLACES, ROUND_HALF_UP)


@dataclass(frozen=True)
class YearlyDepreciation:
    building: Decimal = ZERO
    furniture: Decimal = ZERO
    works: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.building + self.furniture + self.works


@dataclass(frozen=True)
class _TaxYear:
    """Everything one regime handler needs for one year."""
    year: int
    expense: YearlyExpense
    params: TaxParameters
    carry: TaxCarryForward
    depreciation: YearlyDepreciation


# ---- Depreciation ----

def straight_line(value: Decimal, years: int, elapsed: int) -> Decimal:
    """Yearly straight-line amount while `elapsed` is inside the horizon."""
    if value <= 0 or years <= 0 or elapsed < 0 or elapsed >= years:
        return ZERO
    return _q(value / years)


def yearly_depreciation(
    params: TaxParameters,
    start_year: int,
    year: int,
    coverage: Decimal = ONE,
) -> YearlyDepreciation:
    """LMNP depreciation of building, furniture and works for `year`."""
    elapsed = year - start_year
    return YearlyDepreciation(
        building=adjust_for_coverage(
            straight_line(params.building_value, params.building_amortization_years, elapsed),
            coverage,
        ),
        furniture=adjust_for_coverage(
            straight_line(params.furniture_value, params.furniture_amortization_years, elapsed),
            coverage,
        ),
        works=adjust_for_coverage(
            straight_line(params.works_value, params.works_amortization_years, elapsed),
            coverage,
        ),
    )


# ---- Deficit vintages ----

def live_deficits(carry: TaxCarryForward, year: int) -> tuple[DeficitVintage, ...]:
    """Drop deficits older than the carry horizon."""
    horizon = settings.deficit_carry_years
    live = tuple(v for v in carry.deficits if year - v.year <= horizon and v.amount > 0)
    if len(live) != len(carry.deficits):
        logger.debug("Deficits expired in %s: %s", year, [v for v in carry.deficits if v not in live])
    return live


def consume_deficits(
    vintages: tuple[DeficitVintage, ...], amount: Decimal
) -> tuple[Decimal, tuple[DeficitVintage, ...]]:
    """Impute up to `amount` of deficit, oldest first.

    Returns (used, remaining vintages).
    """
    remaining = max(ZERO, amount)
    left: list[DeficitVintage] = []
    for vintage in vintages:
        take = min(vintage.amount, remaining)
        remaining -= take
        if vintage.amount - take > 0:
            left.append(DeficitVintage(year=vintage.year, amount=vintage.amount - take))
    return max(ZERO, amount) - remaining, tuple(left)


def initial_carry(investment: Investment) -> dict[TaxRegime, TaxCarryForward]:
    """Carry state before the first project year."""
    previous = investment.tax_parameters.previous_deficit
    deficits: tuple[DeficitVintage, ...] = ()
    if previous > 0:
        deficits = (DeficitVintage(year=investment.start_year - 1, amount=previous),)
    return {
        TaxRegime.MICRO_FONCIER: TaxCarryForward(),
        TaxRegime.REEL_FONCIER: TaxCarryForward(deficits=deficits),
        TaxRegime.MICRO_BIC: TaxCarryForward(),
        TaxRegime.REEL_BIC: TaxCarryForward(deficits=deficits),
    }


# ---- Regime handlers ----

def _levies(taxable: Decimal, params: TaxParameters) -> tuple[Decimal, Decimal]:
    tax = _q(taxable * params.tax_rate / 100)
    social = _q(taxable * params.social_charges_rate / 100)
    return tax, social


def bare_revenue(expense: YearlyExpense) -> Decimal:
    return expense.rent + expense.tax_benefit + expense.tenant_charges


def furnished_revenue(expense: YearlyExpense) -> Decimal:
    return expense.furnished_rent + expense.tenant_charges


def _micro_foncier(ty: _TaxYear) -> TaxResult:
    rent = _q(ty.expense.rent)
    taxable = _q(rent * (1 - settings.micro_foncier_allowance))
    tax, social = _levies(taxable, ty.params)
    total = tax + social
    return TaxResult(
        regime=TaxRegime.MICRO_FONCIER,
        year=ty.year,
        revenue=rent,
        taxable_income_before_deficit=taxable,
        taxable_income=taxable,
        tax=tax,
        social_charges=social,
        total_tax=total,
        net_income=_q(bare_revenue(ty.expense)) - total,
    )


def _micro_bic(ty: _TaxYear) -> TaxResult:
    rent = _q(ty.expense.furnished_rent)
    taxable = _q(rent * (1 - settings.micro_bic_allowance))
    tax, social = _levies(taxable, ty.params)
    total = tax + social
    return TaxResult(
        regime=TaxRegime.MICRO_BIC,
        year=ty.year,
        revenue=rent,
        taxable_income_before_deficit=taxable,
        taxable_income=taxable,
        tax=tax,
        social_charges=social,
        total_tax=total,
        net_income=_q(furnished_revenue(ty.expense)) - total,
    )


def _reel_foncier(ty: _TaxYear) -> TaxResult:
    revenue = _q(bare_revenue(ty.expense))
    expenses = _q(ty.expense.deductible_expenses)
    result = revenue - expenses
    vintages = live_deficits(ty.carry, ty.year)

    deficit_generated = ZERO
    if result >= 0:
        deficit_used, vintages = consume_deficits(vintages, result)
        taxable = result - deficit_used
    else:
        deficit_used = ZERO
        taxable = ZERO
        deficit_generated = min(-result, ty.params.deficit_limit)
        if deficit_generated > 0:
            vintages = vintages + (DeficitVintage(year=ty.year, amount=deficit_generated),)

    carry = TaxCarryForward(deficits=vintages)
    tax, social = _levies(taxable, ty.params)
    total = tax + social
    return TaxResult(
        regime=TaxRegime.REEL_FONCIER,
        year=ty.year,
        revenue=revenue,
        taxable_income_before_deficit=max(ZERO, result),
        taxable_income=taxable,
        tax=tax,
        social_charges=social,
        total_tax=total,
        net_income=revenue - total,
        deductible_expenses=expenses,
        deficit_used=deficit_used,
        deficit_generated=deficit_generated,
        deficit=carry.total_deficit,
        carry=carry,
    )


def _reel_bic(ty: _TaxYear) -> TaxResult:
    """Réel BIC imputation order: carried depreciation, then prior deficit,
    then this year's depreciation. Depreciation never creates a deficit.
    """
    revenue = _q(furnished_revenue(ty.expense))
    expenses = _q(ty.expense.deductible_expenses)
    result = revenue - expenses
    vintages = live_deficits(ty.carry, ty.year)
    available = ty.depreciation.total
    prior_carried = ty.carry.excess_depreciation

    deficit_used = ZERO
    deficit_generated = ZERO
    used_prior = ZERO
    used_current = ZERO
    if result >= 0:
        remaining = result
        used_prior = min(prior_carried, remaining)
        remaining -= used_prior
        deficit_used, vintages = consume_deficits(vintages, remaining)
        remaining -= deficit_used
        used_current = min(available, remaining)
        remaining -= used_current
        taxable = remaining
    else:
        taxable = ZERO
        deficit_generated = min(-result, ty.params.deficit_limit)
        if deficit_generated > 0:
            vintages = vintages + (DeficitVintage(year=ty.year, amount=deficit_generated),)

    used = used_prior + used_current
    carried_forward = prior_carried + available - used
    carry = TaxCarryForward(deficits=vintages, excess_depreciation=carried_forward)

    tax, social = _levies(taxable, ty.params)
    total = tax + social
    return TaxResult(
        regime=TaxRegime.REEL_BIC,
        year=ty.year,
        revenue=revenue,
        taxable_income_before_deficit=max(ZERO, result),
        taxable_income=taxable,
        tax=tax,
        social_charges=social,
        total_tax=total,
        net_income=revenue - total,
        deductible_expenses=expenses,
        deficit_used=deficit_used,
        deficit_generated=deficit_generated,
        deficit=carry.total_deficit,
        amortization=DepreciationBlock(
            building=ty.depreciation.building,
            furniture=ty.depreciation.furniture,
            works=ty.depreciation.works,
            available=available,
            prior_carried=prior_carried,
            used=used,
            carried_forward=carried_forward,
        ),
        carry=carry,
    )


REGIME_HANDLERS: dict[TaxRegime, Callable[[_TaxYear], TaxResult]] = {
    TaxRegime.MICRO_FONCIER: _micro_foncier,
    TaxRegime.REEL_FONCIER: _reel_foncier,
    TaxRegime.MICRO_BIC: _micro_bic,
    TaxRegime.REEL_BIC: _reel_bic,
}

_unhandled = set(TaxRegime) - set(REGIME_HANDLERS)
if _unhandled:
    raise RuntimeError(f"No tax handler for regimes: {sorted(r.value for r in _unhandled)}")


def _check_result(result: TaxResult) -> None:
    if result.taxable_income > 0 and result.total_tax == 0:
        logger.warning(
            "Zero tax on positive taxable income (%s, %s): %s",
            result.regime.value, result.year, result.taxable_income,
        )


def compute_regime(
    regime: TaxRegime,
    expense: YearlyExpense,
    params: TaxParameters,
    carry: Optional[TaxCarryForward] = None,
    depreciation: Optional[YearlyDepreciation] = None,
) -> TaxResult:
    """Tax result of one regime for the year of `expense` (figures already prorated)."""
    ty = _TaxYear(
        year=expense.year,
        expense=expense,
        params=params,
        carry=carry or TaxCarryForward(),
        depreciation=depreciation or YearlyDepreciation(),
    )
    result = REGIME_HANDLERS[regime](ty)
    _check_result(result)
    return result


def compute_all_regimes(
    expense: YearlyExpense,
    params: TaxParameters,
    carry: Optional[Mapping[TaxRegime, TaxCarryForward]] = None,
    depreciation: Optional[YearlyDepreciation] = None,
) -> dict[TaxRegime, TaxResult]:
    """All four regimes side by side, each with its own carry-forward chain."""
    carry = carry or {}
    return {
        regime: compute_regime(regime, expense, params, carry.get(regime), depreciation)
        for regime in TaxRegime
    }


# ---- Eligibility & recommendation ----

def is_eligible(regime: TaxRegime, expense: YearlyExpense, coverage: Decimal = ONE) -> bool:
    """Micro regimes are capped on (annualized) gross rent."""
    if regime is TaxRegime.MICRO_FONCIER:
        return annualize(expense.rent, coverage) <= settings.micro_foncier_threshold
    if regime is TaxRegime.MICRO_BIC:
        return annualize(expense.furnished_rent, coverage) <= settings.micro_bic_threshold
    return True


def recommend_regime(
    results: Mapping[TaxRegime, TaxResult],
    expense: YearlyExpense,
    coverage: Decimal = ONE,
) -> TaxRegime:
    """Eligible regime with the highest net income."""
    eligible = [r for r in TaxRegime if r in results and is_eligible(r, expense, coverage)]
    return max(eligible, key=lambda r: results[r].net_income)


# ---- Multi-year fold ----

def prepare_expense(
    investment: Investment,
    year: int,
    coverage: Decimal,
    schedule: AmortizationSchedule,
) -> YearlyExpense:
    """Prorated yearly record; loan columns come from the schedule when there is a loan."""
    expense = prorate_expense(investment.expense_for(year), coverage)
    if schedule.rows:
        expense = with_loan_figures(expense, investment_loan_year(investment, year, schedule))
    return expense


def build_tax_ledger(
    investment: Investment,
    through_year: Optional[int] = None,
    schedule: Optional[AmortizationSchedule] = None,
) -> tuple[YearTaxEntry, ...]:
    """Fold the project years in order; each year starts from the previous carry."""
    schedule = schedule if schedule is not None else investment_schedule(investment)
    last_year = investment.end_year if through_year is None else through_year
    years = [y for y in investment.project_years if y <= last_year]
    start = initial_carry(investment)

    def step(entries: tuple[YearTaxEntry, ...], year: int) -> tuple[YearTaxEntry, ...]:
        carry = (
            {regime: result.carry for regime, result in entries[-1].results.items()}
            if entries
            else start
        )
        coverage = year_coverage(investment, year)
        expense = prepare_expense(investment, year, coverage, schedule)
        depreciation = yearly_depreciation(
            investment.tax_parameters, investment.start_year, year, coverage
        )
        results = compute_all_regimes(expense, investment.tax_parameters, carry, depreciation)
        return entries + (YearTaxEntry(year=year, coverage=coverage, expense=expense, results=results),)

    return reduce(step, years, ())


def accumulated_depreciation(ledger: tuple[YearTaxEntry, ...], through_year: int) -> Decimal:
    """Depreciation actually deducted under réel BIC up to and including `through_year`."""
    total = ZERO
    for entry in ledger:
        if entry.year > through_year:
            break
        block = entry.results[TaxRegime.REEL_BIC].amortization
        if block is not None:
            total += block.used
    return total
