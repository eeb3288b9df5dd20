"""Property disposition (sale) analysis.

Revalued sale price, loan payoff with early-repayment fees, and the
capital-gain tax of each regime.

Pure functions. No I/O.
"""

import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from immotax.engine.capital_gain import compute_capital_gain
from immotax.engine.debt import investment_schedule, remaining_balance_at
from immotax.engine.tax import accumulated_depreciation
from immotax.models.investment import AppreciationType, Investment, TaxRegime
from immotax.models.results import AmortizationSchedule, SaleResult, YearTaxEntry

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def estimated_sale_price(investment: Investment, sale_year: int) -> Decimal:
    """Gross sale price according to the appreciation type.

    global: one percentage over the whole holding period
    annual: percentage compounded once per year held
    amount: the price is given directly
    """
    price = investment.purchase_price
    value = investment.appreciation_value
    kind = investment.appreciation_type

    if kind is AppreciationType.AMOUNT:
        sale_price = value
    elif kind is AppreciationType.GLOBAL:
        sale_price = price * (1 + value / 100)
    else:
        years = max(0, sale_year - investment.start_year)
        sale_price = price * (1 + value / 100) ** years

    return max(ZERO, sale_price).quantize(TWO_PLACES, ROUND_HALF_UP)


def sale_date(investment: Investment, sale_year: int) -> date:
    """Dec 31 of the sale year, or the project end when it comes first."""
    return min(date(sale_year, 12, 31), investment.project_end_date)


def compute_sale(
    investment: Investment,
    regime: TaxRegime,
    ledger: tuple[YearTaxEntry, ...],
    sale_year: Optional[int] = None,
    schedule: Optional[AmortizationSchedule] = None,
) -> SaleResult:
    """Net proceeds of selling at the end of `sale_year` under `regime`.

    Args:
        investment: Property being sold
        regime: Regime the property was held under
        ledger: Tax ledger, source of the depreciation deducted under réel BIC
        sale_year: Defaults to the investment's sale year
        schedule: Amortization schedule, rebuilt when missing
    """
    year = investment.sale_year if sale_year is None else sale_year
    schedule = schedule if schedule is not None else investment_schedule(investment)

    gross_price = estimated_sale_price(investment, year)
    net_price = gross_price - investment.sale_agency_fees
    balance = remaining_balance_at(schedule, sale_date(investment, year))
    repayment_fees = investment.early_repayment_fees if balance > 0 else ZERO

    depreciation = ZERO
    if regime is TaxRegime.REEL_BIC:
        depreciation = accumulated_depreciation(ledger, year)

    gain = compute_capital_gain(
        regime=regime,
        basis=investment.capital_gain_basis,
        sale_price=net_price,
        holding_years=year - investment.start_year,
        marginal_rate=investment.tax_parameters.tax_rate,
        accumulated_depreciation=depreciation,
        is_lmp=investment.is_lmp,
    )

    sale_balance = net_price - balance - repayment_fees - gain.total_tax
    logger.debug(
        "Sale %s in %s under %s: net price %s, debt %s, gain tax %s",
        investment.id or investment.name, year, regime.value, net_price, balance, gain.total_tax,
    )
    return SaleResult(
        year=year,
        regime=regime,
        sale_price=gross_price,
        net_sale_price=net_price,
        remaining_balance=balance,
        early_repayment_fees=repayment_fees,
        accumulated_depreciation=depreciation,
        capital_gain=gain,
        sale_balance=sale_balance,
    )


def compute_all_sales(
    investment: Investment,
    ledger: tuple[YearTaxEntry, ...],
    sale_year: Optional[int] = None,
    schedule: Optional[AmortizationSchedule] = None,
) -> dict[TaxRegime, SaleResult]:
    schedule = schedule if schedule is not None else investment_schedule(investment)
    return {
        regime: compute_sale(investment, regime, ledger, sale_year, schedule)
        for regime in TaxRegime
    }
