"""Analysis orchestrator: composes all engine sub-modules into a full analysis.

Pure computation. No I/O. Dataclasses in, InvestmentAnalysis / SCIAnalysis out.
"""

import logging
from decimal import Decimal
from typing import Optional, Sequence

from immotax.engine.cashflow import ledger_cash_flows
from immotax.engine.debt import investment_schedule
from immotax.engine.disposition import compute_all_sales
from immotax.engine.irr import compute_equity_multiple, compute_irr
from immotax.engine.projection import with_projected_expenses
from immotax.engine.sci import compute_all_sci_tax
from immotax.engine.tax import build_tax_ledger, recommend_regime
from immotax.models.investment import Investment, TaxRegime
from immotax.models.results import InvestmentAnalysis, SCIAnalysis, YearTaxEntry
from immotax.models.sci import SCI

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def irr_cash_flows(
    down_payment: Decimal,
    ledger: tuple[YearTaxEntry, ...],
    yearly_cash_flows: Sequence[Decimal],
    sale_year: int,
    sale_balance: Decimal,
) -> list[Decimal]:
    """[-down payment, cf(start), ..., cf(sale year) + sale balance]."""
    flows = [-down_payment]
    flows += [cf for entry, cf in zip(ledger, yearly_cash_flows) if entry.year <= sale_year]
    if len(flows) == 1:
        flows.append(ZERO)
    flows[-1] += sale_balance
    return flows


def run_analysis(investment: Investment) -> InvestmentAnalysis:
    """Run complete analysis of one property.

    Missing yearly records are projected first; the tax ledger then covers
    every project year, and the sale is evaluated at the investment's sale year.
    """
    schedule = investment_schedule(investment)
    investment = with_projected_expenses(investment, schedule)
    ledger = build_tax_ledger(investment, schedule=schedule)
    cash_flows = ledger_cash_flows(ledger)

    recommended = {
        entry.year: recommend_regime(entry.results, entry.expense, entry.coverage)
        for entry in ledger
    }

    sale_year = investment.sale_year
    sales = compute_all_sales(investment, ledger, sale_year, schedule)
    down_payment = investment.down_payment

    irr: dict[TaxRegime, Optional[Decimal]] = {}
    equity_multiple: dict[TaxRegime, Decimal] = {}
    for regime in TaxRegime:
        flows = irr_cash_flows(
            down_payment, ledger, cash_flows[regime], sale_year, sales[regime].sale_balance
        )
        irr[regime] = compute_irr(flows)
        equity_multiple[regime] = compute_equity_multiple(sum(flows[1:], ZERO), down_payment)

    logger.info(
        "Analysis of %s: sale %s, IRR %s",
        investment.id or investment.name, sale_year,
        {r.value: v for r, v in irr.items()},
    )
    return InvestmentAnalysis(
        schedule=schedule,
        ledger=ledger,
        cash_flows=cash_flows,
        recommended_regimes=recommended,
        sale_year=sale_year,
        sales=sales,
        irr=irr,
        equity_multiple=equity_multiple,
        down_payment=down_payment,
    )


def irr_by_sale_year(investment: Investment) -> dict[int, dict[TaxRegime, Optional[Decimal]]]:
    """IRR of each regime for a resale at the end of every project year."""
    schedule = investment_schedule(investment)
    investment = with_projected_expenses(investment, schedule)
    ledger = build_tax_ledger(investment, schedule=schedule)
    cash_flows = ledger_cash_flows(ledger)
    down_payment = investment.down_payment

    by_year: dict[int, dict[TaxRegime, Optional[Decimal]]] = {}
    for year in investment.project_years:
        sales = compute_all_sales(investment, ledger, year, schedule)
        by_year[year] = {
            regime: compute_irr(irr_cash_flows(
                down_payment, ledger, cash_flows[regime], year, sales[regime].sale_balance
            ))
            for regime in TaxRegime
        }
    return by_year


def run_sci_analysis(sci: SCI, properties: Sequence[Investment]) -> SCIAnalysis:
    """Consolidated IS of every SCI year, members' missing records projected first."""
    members = [p for p in properties if not sci.property_ids or p.id in sci.property_ids]
    if len(members) != len(properties):
        logger.warning(
            "SCI %s: ignoring %s properties not listed as members",
            sci.id, len(properties) - len(members),
        )
    return compute_all_sci_tax(sci, [with_projected_expenses(p) for p in members])
