"""Cash flow analysis: post-tax yearly cash flow and yields per regime.

Pure functions: Decimal in, Decimal out. No I/O.
"""

from decimal import Decimal, ROUND_HALF_UP

from immotax.engine.prorata import annualize
from immotax.engine.tax import bare_revenue, furnished_revenue
from immotax.models.investment import Investment, TaxRegime, YearlyExpense
from immotax.models.results import TaxResult, YearTaxEntry

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def regime_revenue(regime: TaxRegime, expense: YearlyExpense) -> Decimal:
    """Cash received under `regime`: furnished rent for LMNP, bare rent otherwise."""
    if regime.is_furnished:
        return furnished_revenue(expense)
    return bare_revenue(expense)


def yearly_cash_flow(expense: YearlyExpense, result: TaxResult) -> Decimal:
    """Revenue - charges - loan payment and insurance - income tax."""
    cash_flow = (
        regime_revenue(result.regime, expense)
        - expense.operating_charges
        - expense.loan_payment
        - expense.loan_insurance
        - result.total_tax
    )
    return cash_flow.quantize(TWO_PLACES, ROUND_HALF_UP)


def ledger_cash_flows(ledger: tuple[YearTaxEntry, ...]) -> dict[TaxRegime, tuple[Decimal, ...]]:
    """One post-tax cash flow per ledger year, per regime."""
    return {
        regime: tuple(yearly_cash_flow(entry.expense, entry.results[regime]) for entry in ledger)
        for regime in TaxRegime
    }


def gross_yield(investment: Investment, regime: TaxRegime, entry: YearTaxEntry) -> Decimal:
    """Yearly revenue over price + agency fees + renovation, in percent.

    Partial years are annualized by their coverage.
    """
    basis = investment.yield_basis
    if basis <= 0:
        return ZERO
    revenue = annualize(regime_revenue(regime, entry.expense), entry.coverage)
    return (revenue / basis * 100).quantize(TWO_PLACES, ROUND_HALF_UP)


def net_yield(investment: Investment, regime: TaxRegime, entry: YearTaxEntry) -> Decimal:
    """Like gross_yield, with operating charges deducted."""
    basis = investment.yield_basis
    if basis <= 0:
        return ZERO
    expense = entry.expense
    net = annualize(regime_revenue(regime, expense) - expense.operating_charges, entry.coverage)
    return (net / basis * 100).quantize(TWO_PLACES, ROUND_HALF_UP)


def cash_on_cash(annual_cash_flow: Decimal, down_payment: Decimal) -> Decimal:
    """Cash flow / cash invested, in percent."""
    if down_payment == 0:
        return ZERO
    return (annual_cash_flow / down_payment * 100).quantize(TWO_PLACES, ROUND_HALF_UP)
