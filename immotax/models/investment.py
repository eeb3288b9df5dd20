from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from immotax.config import settings

ZERO = Decimal("0")


class TaxRegime(Enum):
    MICRO_FONCIER = "micro-foncier"
    REEL_FONCIER = "reel-foncier"
    MICRO_BIC = "micro-bic"
    REEL_BIC = "reel-bic"

    @property
    def is_furnished(self) -> bool:
        """LMNP regimes (location meublée)."""
        return self in (TaxRegime.MICRO_BIC, TaxRegime.REEL_BIC)

    @property
    def is_micro(self) -> bool:
        return self in (TaxRegime.MICRO_FONCIER, TaxRegime.MICRO_BIC)


class DeferralType(Enum):
    NONE = "none"
    PARTIAL = "partial"  # Interest only during the deferral
    TOTAL = "total"  # Nothing paid, interest capitalized


class AppreciationType(Enum):
    GLOBAL = "global"  # % over the whole holding period
    ANNUAL = "annual"  # % compounded each year
    AMOUNT = "amount"  # Sale price given directly


@dataclass(frozen=True)
class YearlyExpense:
    year: int

    # Revenues
    rent: Decimal = ZERO  # Loyer nu
    furnished_rent: Decimal = ZERO  # Loyer meublé
    tenant_charges: Decimal = ZERO  # Charges récupérables
    tax_benefit: Decimal = ZERO  # Aide fiscale

    # Deductible charges
    property_tax: Decimal = ZERO
    condo_fees: Decimal = ZERO
    property_insurance: Decimal = ZERO
    management_fees: Decimal = ZERO
    unpaid_rent_insurance: Decimal = ZERO
    repairs: Decimal = ZERO
    other_deductible: Decimal = ZERO

    # Non-deductible
    other_non_deductible: Decimal = ZERO

    # Loan
    loan_payment: Decimal = ZERO
    loan_insurance: Decimal = ZERO
    interest: Decimal = ZERO

    # Display caches only; the engine recomputes these
    tax: Decimal = ZERO
    deficit: Decimal = ZERO

    @property
    def deductible_charges(self) -> Decimal:
        """Itemized deductible charges, loan excluded."""
        return (
            self.property_tax
            + self.condo_fees
            + self.property_insurance
            + self.management_fees
            + self.unpaid_rent_insurance
            + self.repairs
            + self.other_deductible
        )

    @property
    def deductible_expenses(self) -> Decimal:
        """Charges deductible under the réel regimes, loan interest and insurance included."""
        return self.deductible_charges + self.loan_insurance + self.interest

    @property
    def operating_charges(self) -> Decimal:
        """Every cash charge other than the loan."""
        return self.deductible_charges + self.other_non_deductible


# Money fields of YearlyExpense, used when scaling a whole record
EXPENSE_MONEY_FIELDS: tuple[str, ...] = (
    "rent",
    "furnished_rent",
    "tenant_charges",
    "tax_benefit",
    "property_tax",
    "condo_fees",
    "property_insurance",
    "management_fees",
    "unpaid_rent_insurance",
    "repairs",
    "other_deductible",
    "other_non_deductible",
    "loan_payment",
    "loan_insurance",
    "interest",
    "tax",
    "deficit",
)


@dataclass(frozen=True)
class ExpenseProjection:
    """Base-year figures grown at a yearly rate (percent) to fill future years."""
    base_year: int
    base: YearlyExpense
    property_tax_increase: Decimal = Decimal("2")
    condo_fees_increase: Decimal = Decimal("2")
    property_insurance_increase: Decimal = Decimal("1")
    management_fees_increase: Decimal = Decimal("1")
    unpaid_rent_insurance_increase: Decimal = Decimal("1")
    repairs_increase: Decimal = Decimal("2")
    other_deductible_increase: Decimal = Decimal("1")
    other_non_deductible_increase: Decimal = Decimal("1")
    rent_increase: Decimal = Decimal("2")
    furnished_rent_increase: Decimal = Decimal("2")
    tenant_charges_increase: Decimal = Decimal("2")
    tax_benefit_increase: Decimal = Decimal("1")

    def rate_for(self, field_name: str) -> Decimal:
        return getattr(self, f"{field_name}_increase", ZERO)


@dataclass(frozen=True)
class TaxParameters:
    tax_rate: Decimal = Decimal("30")  # Marginal income tax rate, %
    social_charges_rate: Decimal = Decimal("17.2")  # Prélèvements sociaux, %

    # LMNP depreciation
    building_value: Decimal = ZERO  # Land excluded
    building_amortization_years: int = 25
    furniture_value: Decimal = ZERO
    furniture_amortization_years: int = 10
    works_value: Decimal = ZERO
    works_amortization_years: int = 10

    # Location nue
    previous_deficit: Decimal = ZERO
    deficit_limit: Decimal = field(default_factory=lambda: settings.deficit_limit)


@dataclass(frozen=True)
class Investment:
    project_start_date: date
    project_end_date: date

    id: str = ""
    name: str = ""

    # Acquisition
    purchase_price: Decimal = ZERO
    agency_fees: Decimal = ZERO
    notary_fees: Decimal = ZERO
    bank_fees: Decimal = ZERO
    bank_guarantee_fees: Decimal = ZERO
    mandatory_diagnostics: Decimal = ZERO
    renovation_costs: Decimal = ZERO
    improvement_works: Decimal = ZERO  # Added to the capital gain basis

    # Financing
    loan_amount: Decimal = ZERO
    interest_rate: Decimal = ZERO  # Annual, %
    loan_duration: int = 20  # Years, deferral included
    insurance_rate: Decimal = ZERO  # Annual, % of the borrowed amount
    loan_start_date: Optional[date] = None
    deferral_type: DeferralType = DeferralType.NONE
    deferred_period: int = 0  # Months

    # Sale
    target_sale_year: Optional[int] = None
    appreciation_type: AppreciationType = AppreciationType.ANNUAL
    appreciation_value: Decimal = ZERO
    sale_agency_fees: Decimal = ZERO
    early_repayment_fees: Decimal = ZERO

    # Tax
    selected_regime: TaxRegime = TaxRegime.MICRO_FONCIER
    is_lmp: bool = False  # Loueur en meublé professionnel
    tax_parameters: TaxParameters = field(default_factory=TaxParameters)

    # Value used for the SCI prorata (defaults to the purchase price)
    sci_property_value: Optional[Decimal] = None

    expenses: tuple[YearlyExpense, ...] = ()
    expense_projection: Optional[ExpenseProjection] = None

    @property
    def total_acquisition_cost(self) -> Decimal:
        return (
            self.purchase_price
            + self.agency_fees
            + self.notary_fees
            + self.bank_fees
            + self.bank_guarantee_fees
            + self.mandatory_diagnostics
            + self.renovation_costs
        )

    @property
    def down_payment(self) -> Decimal:
        """Cash put in by the investor: everything the loan does not cover."""
        return max(ZERO, self.total_acquisition_cost - self.loan_amount)

    @property
    def capital_gain_basis(self) -> Decimal:
        """Prix d'acquisition corrigé = price + acquisition fees + improvement works."""
        return self.purchase_price + self.notary_fees + self.agency_fees + self.improvement_works

    @property
    def yield_basis(self) -> Decimal:
        return self.purchase_price + self.agency_fees + self.renovation_costs

    @property
    def property_value(self) -> Decimal:
        if self.sci_property_value is not None and self.sci_property_value > 0:
            return self.sci_property_value
        return self.purchase_price

    @property
    def start_year(self) -> int:
        return self.project_start_date.year

    @property
    def end_year(self) -> int:
        return self.project_end_date.year

    @property
    def project_years(self) -> list[int]:
        return list(range(self.start_year, self.end_year + 1))

    @property
    def sale_year(self) -> int:
        if self.target_sale_year is not None:
            return min(max(self.target_sale_year, self.start_year), self.end_year)
        return self.end_year

    @property
    def schedule_start_date(self) -> date:
        return self.loan_start_date or self.project_start_date

    def expense_for(self, year: int) -> YearlyExpense:
        """Record for `year`, or an all-zero record when none was entered."""
        for expense in self.expenses:
            if expense.year == year:
                return expense
        return YearlyExpense(year=year)
