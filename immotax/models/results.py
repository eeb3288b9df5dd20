from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from immotax.models.investment import TaxRegime, YearlyExpense

ZERO = Decimal("0")


# ---- Loan ----

@dataclass(frozen=True)
class AmortizationRow:
    month: int
    date: date
    payment: Decimal
    principal: Decimal
    interest: Decimal
    insurance: Decimal
    remaining_balance: Decimal
    is_deferred: bool = False


@dataclass(frozen=True)
class AmortizationSchedule:
    rows: tuple[AmortizationRow, ...] = ()
    monthly_payment: Decimal = ZERO  # Payment once amortization starts
    deferred_interest: Decimal = ZERO  # Interest capitalized during a total deferral
    total_interest: Decimal = ZERO
    total_principal: Decimal = ZERO

    @property
    def final_balance(self) -> Decimal:
        if not self.rows:
            return ZERO
        return self.rows[-1].remaining_balance


@dataclass(frozen=True)
class LoanYear:
    year: int
    payment: Decimal = ZERO
    principal: Decimal = ZERO
    interest: Decimal = ZERO
    insurance: Decimal = ZERO


# ---- Yearly income tax ----

@dataclass(frozen=True)
class DeficitVintage:
    """Deficit generated in `year`, still available for imputation."""
    year: int
    amount: Decimal


@dataclass(frozen=True)
class TaxCarryForward:
    deficits: tuple[DeficitVintage, ...] = ()
    excess_depreciation: Decimal = ZERO  # Amortissements réputés différés, no expiry

    @property
    def total_deficit(self) -> Decimal:
        return sum((v.amount for v in self.deficits), ZERO)


@dataclass(frozen=True)
class DepreciationBlock:
    building: Decimal = ZERO
    furniture: Decimal = ZERO
    works: Decimal = ZERO
    available: Decimal = ZERO  # This year's depreciation
    prior_carried: Decimal = ZERO  # Excess carried in from previous years
    used: Decimal = ZERO
    carried_forward: Decimal = ZERO


@dataclass(frozen=True)
class TaxResult:
    regime: TaxRegime
    year: int
    revenue: Decimal = ZERO
    taxable_income_before_deficit: Decimal = ZERO
    taxable_income: Decimal = ZERO
    tax: Decimal = ZERO
    social_charges: Decimal = ZERO
    total_tax: Decimal = ZERO
    net_income: Decimal = ZERO

    # Réel regimes only
    deductible_expenses: Optional[Decimal] = None
    deficit_used: Decimal = ZERO
    deficit_generated: Decimal = ZERO
    deficit: Optional[Decimal] = None  # Deficit carried to next year
    amortization: Optional[DepreciationBlock] = None

    carry: TaxCarryForward = field(default_factory=TaxCarryForward)


@dataclass(frozen=True)
class YearTaxEntry:
    year: int
    coverage: Decimal
    expense: YearlyExpense  # Prorated figures that entered the computation
    results: dict[TaxRegime, TaxResult]


# ---- Sale ----

@dataclass(frozen=True)
class CapitalGainResult:
    regime: TaxRegime
    holding_years: int = 0
    gross_capital_gain: Decimal = ZERO
    income_rebate_pct: Decimal = ZERO
    social_rebate_pct: Decimal = ZERO
    taxable_gain_income: Decimal = ZERO
    taxable_gain_social: Decimal = ZERO

    # LMP split
    short_term_gain: Decimal = ZERO
    long_term_gain: Decimal = ZERO
    short_term_tax: Decimal = ZERO

    # LMNP réel depreciation recapture
    depreciation_taxable: Decimal = ZERO
    depreciation_tax: Decimal = ZERO

    income_tax: Decimal = ZERO  # Business-rate parts included
    social_charges: Decimal = ZERO
    total_tax: Decimal = ZERO
    net_capital_gain: Decimal = ZERO


@dataclass(frozen=True)
class SaleResult:
    year: int
    regime: TaxRegime
    sale_price: Decimal
    net_sale_price: Decimal  # After sale agency fees
    remaining_balance: Decimal
    early_repayment_fees: Decimal
    accumulated_depreciation: Decimal
    capital_gain: CapitalGainResult
    sale_balance: Decimal  # Net price - debt - capital gain tax


# ---- SCI ----

@dataclass(frozen=True)
class PropertyContribution:
    property_id: str
    property_name: str
    revenues: Decimal = ZERO
    expenses: Decimal = ZERO
    amortization: Decimal = ZERO
    contribution_to_result: Decimal = ZERO
    property_value: Decimal = ZERO
    prorata_weight: Decimal = ZERO
    allocated_is: Decimal = ZERO


@dataclass(frozen=True)
class SCITaxResult:
    year: int
    coverage: Decimal = ZERO
    total_revenues: Decimal = ZERO
    total_deductible_expenses: Decimal = ZERO  # Entity running costs included
    operating_expenses: Decimal = ZERO  # Entity running costs alone
    total_amortization: Decimal = ZERO
    result_before_deficit: Decimal = ZERO
    taxable_income: Decimal = ZERO
    deficit_used: Decimal = ZERO
    deficit_generated: Decimal = ZERO
    deficit_carried_forward: Decimal = ZERO
    is_at_reduced_rate: Decimal = ZERO
    is_at_standard_rate: Decimal = ZERO
    total_is: Decimal = ZERO
    property_contributions: dict[str, PropertyContribution] = field(default_factory=dict)


# ---- Orchestrated analyses ----

@dataclass(frozen=True)
class InvestmentAnalysis:
    schedule: AmortizationSchedule
    ledger: tuple[YearTaxEntry, ...]
    cash_flows: dict[TaxRegime, tuple[Decimal, ...]]  # One per project year
    recommended_regimes: dict[int, TaxRegime]
    sale_year: int
    sales: dict[TaxRegime, SaleResult]
    irr: dict[TaxRegime, Optional[Decimal]]
    equity_multiple: dict[TaxRegime, Decimal]
    down_payment: Decimal = ZERO


@dataclass(frozen=True)
class SCIAnalysis:
    sci_id: str
    years: tuple[int, ...]
    results: dict[int, SCITaxResult]

    @property
    def total_is(self) -> Decimal:
        return sum((r.total_is for r in self.results.values()), ZERO)

    @property
    def final_deficit(self) -> Decimal:
        if not self.years:
            return ZERO
        return self.results[self.years[-1]].deficit_carried_forward
