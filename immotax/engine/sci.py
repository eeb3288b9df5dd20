"""SCI à l'IS: consolidated corporate tax, allocated back to each property.

Revenues, charges and depreciation of every member property are summed with
the entity's own running costs. The deficit carries forward without time
limit. Tax follows the two-bracket schedule (reduced rate up to the threshold,
standard rate above) and is split by property value, not by each property's
own result.

Pure functions. No I/O.
"""

import logging
from dataclasses import replace
from decimal import Decimal, ROUND_HALF_UP
from functools import reduce
from typing import Optional, Sequence

from immotax.config import settings
from immotax.engine.debt import investment_loan_year, investment_schedule
from immotax.engine.prorata import adjust_for_coverage, sci_year_coverage, year_coverage
from immotax.engine.tax import straight_line
from immotax.models.investment import Investment
from immotax.models.results import PropertyContribution, SCIAnalysis, SCITaxResult
from immotax.models.sci import SCI, RentalType, SCITaxParameters

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _q(amount: Decimal) -> Decimal:
    return amount.quantize(TWO_PLACES, ROUND_HALF_UP)


def building_value(prop: Investment) -> Decimal:
    """Depreciable building value. Land is excluded by a default share of the price."""
    explicit = prop.tax_parameters.building_value
    if explicit > 0:
        return explicit
    return _q(prop.purchase_price * settings.default_building_share)


def property_depreciation(
    prop: Investment,
    year: int,
    params: SCITaxParameters,
    coverage: Decimal = Decimal("1"),
) -> Decimal:
    """Building, furniture and works depreciation of one property, each on its own horizon."""
    elapsed = year - prop.start_year
    parts = (
        straight_line(building_value(prop), params.building_amortization_years, elapsed),
        straight_line(prop.tax_parameters.furniture_value, params.furniture_amortization_years, elapsed),
        straight_line(prop.renovation_costs, params.works_amortization_years, elapsed),
    )
    return sum((adjust_for_coverage(part, coverage) for part in parts), ZERO)


def corporate_tax(taxable: Decimal, params: SCITaxParameters) -> tuple[Decimal, Decimal]:
    """IS at the reduced and standard rates."""
    if taxable <= 0:
        return ZERO, ZERO
    reduced_part = min(taxable, params.reduced_rate_threshold)
    standard_part = max(ZERO, taxable - params.reduced_rate_threshold)
    return (
        _q(reduced_part * params.reduced_rate / HUNDRED),
        _q(standard_part * params.standard_rate / HUNDRED),
    )


def member_keys(properties: Sequence[Investment]) -> list[str]:
    """Allocation key per member: its id, or `<id>#<position>` when missing or repeated."""
    keys: list[str] = []
    for index, prop in enumerate(properties):
        key = prop.id
        if not key or key in keys:
            key = f"{prop.id}#{index}"
            if prop.id:
                logger.warning("SCI member id %r repeated; keyed as %s", prop.id, key)
        keys.append(key)
    return keys


def allocation_weights(properties: Sequence[Investment]) -> dict[str, Decimal]:
    """Share of total property value per member key. All zero when the total is zero."""
    keys = member_keys(properties)
    total = sum((p.property_value for p in properties), ZERO)
    if total <= 0:
        logger.warning("SCI property values sum to %s; allocation weights are zero", total)
        return {key: ZERO for key in keys}
    return {key: p.property_value / total for key, p in zip(keys, properties)}


def allocate(total_is: Decimal, weights: dict[str, Decimal]) -> dict[str, Decimal]:
    """Split `total_is` by weight in cents; the last weighted property takes the residue."""
    shares = {pid: _q(total_is * w) for pid, w in weights.items()}
    weighted = [pid for pid, w in weights.items() if w > 0]
    if weighted:
        residue = total_is - sum(shares.values(), ZERO)
        shares[weighted[-1]] += residue
    return shares


def _contribution(
    sci: SCI, prop: Investment, key: str, year: int, weight: Decimal
) -> PropertyContribution:
    params = sci.tax_parameters
    coverage = year_coverage(prop, year)
    loan = investment_loan_year(prop, year, investment_schedule(prop))

    # Loan rows are already restricted to the project window
    loan_charges = loan.interest + loan.insurance

    expense = prop.expense_for(year)
    if params.rental_type is RentalType.UNFURNISHED:
        revenue = adjust_for_coverage(expense.rent, coverage)
    else:
        revenue = adjust_for_coverage(expense.furnished_rent, coverage)
    charges = (
        adjust_for_coverage(expense.deductible_charges, coverage)
        - adjust_for_coverage(expense.tenant_charges, coverage)
        + loan_charges
    )
    depreciation = property_depreciation(prop, year, params, coverage)

    return PropertyContribution(
        property_id=key,
        property_name=prop.name,
        revenues=revenue,
        expenses=charges,
        amortization=depreciation,
        contribution_to_result=revenue - charges - depreciation,
        property_value=prop.property_value,
        prorata_weight=weight,
    )


def compute_sci_tax(
    sci: SCI,
    properties: Sequence[Investment],
    year: int,
    previous: Optional[SCITaxResult] = None,
) -> SCITaxResult:
    """Consolidated IS of `sci` for `year`.

    Args:
        sci: Holding entity and its tax parameters
        properties: Member properties
        year: Fiscal year
        previous: Result of the prior year, source of the carried deficit.
            The entity's declared previous deficit is used when missing.
    """
    params = sci.tax_parameters
    weights = allocation_weights(properties)
    contributions = [
        _contribution(sci, p, key, year, weights[key])
        for key, p in zip(member_keys(properties), properties)
    ]

    coverage = sci_year_coverage(properties, year)
    operating = adjust_for_coverage(params.operating_expenses, coverage)

    revenues = sum((c.revenues for c in contributions), ZERO)
    expenses = sum((c.expenses for c in contributions), ZERO) + operating
    amortization = sum((c.amortization for c in contributions), ZERO)
    result = revenues - expenses - amortization

    prior_deficit = previous.deficit_carried_forward if previous is not None else params.previous_deficits
    deficit_used = ZERO
    deficit_generated = ZERO
    if result < 0:
        deficit_generated = -result
        taxable = ZERO
    else:
        deficit_used = min(prior_deficit, result)
        taxable = result - deficit_used

    reduced, standard = corporate_tax(taxable, params)
    total_is = reduced + standard
    shares = allocate(total_is, weights)

    logger.debug(
        "SCI %s %s: result %s, taxable %s, IS %s", sci.id, year, result, taxable, total_is
    )
    return SCITaxResult(
        year=year,
        coverage=coverage,
        total_revenues=revenues,
        total_deductible_expenses=expenses,
        operating_expenses=operating,
        total_amortization=amortization,
        result_before_deficit=result,
        taxable_income=taxable,
        deficit_used=deficit_used,
        deficit_generated=deficit_generated,
        deficit_carried_forward=prior_deficit - deficit_used + deficit_generated,
        is_at_reduced_rate=reduced,
        is_at_standard_rate=standard,
        total_is=total_is,
        property_contributions={
            c.property_id: replace(c, allocated_is=shares[c.property_id])
            for c in contributions
        },
    )


def sci_years(properties: Sequence[Investment]) -> tuple[int, ...]:
    """Union of the member project years, ascending."""
    return tuple(sorted({year for p in properties for year in p.project_years}))


def compute_all_sci_tax(sci: SCI, properties: Sequence[Investment]) -> SCIAnalysis:
    """Fold every SCI year in order, threading the carried deficit."""
    years = sci_years(properties)

    def step(results: dict[int, SCITaxResult], year: int) -> dict[int, SCITaxResult]:
        previous = results[max(results)] if results else None
        return {**results, year: compute_sci_tax(sci, properties, year, previous)}

    return SCIAnalysis(sci_id=sci.id, years=years, results=reduce(step, years, {}))


def property_allocated_is(result: SCITaxResult, property_id: str) -> Decimal:
    contribution = result.property_contributions.get(property_id)
    return contribution.allocated_is if contribution is not None else ZERO


def property_net_result_in_sci(result: SCITaxResult, property_id: str) -> Decimal:
    """Revenue minus charges of one property, after its share of the IS."""
    contribution = result.property_contributions.get(property_id)
    if contribution is None:
        return ZERO
    return contribution.revenues - contribution.expenses - contribution.allocated_is
