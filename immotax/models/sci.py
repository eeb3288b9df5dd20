"""SCI à l'IS: a holding entity taxed on the consolidated result of its properties."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from immotax.config import settings

ZERO = Decimal("0")


class RentalType(Enum):
    UNFURNISHED = "unfurnished"
    FURNISHED = "furnished"


@dataclass(frozen=True)
class SCITaxParameters:
    # Corporate tax brackets, %
    standard_rate: Decimal = field(default_factory=lambda: settings.sci_standard_rate)
    reduced_rate: Decimal = field(default_factory=lambda: settings.sci_reduced_rate)
    reduced_rate_threshold: Decimal = field(
        default_factory=lambda: settings.sci_reduced_rate_threshold
    )

    # Carried without time limit
    previous_deficits: Decimal = ZERO

    # Depreciation durations (years)
    building_amortization_years: int = 25
    furniture_amortization_years: int = 10
    works_amortization_years: int = 10

    # Yearly entity running costs
    accounting_fees: Decimal = ZERO
    legal_fees: Decimal = ZERO
    bank_fees: Decimal = ZERO
    insurance_fees: Decimal = ZERO
    other_expenses: Decimal = ZERO

    rental_type: RentalType = RentalType.UNFURNISHED

    @property
    def operating_expenses(self) -> Decimal:
        return (
            self.accounting_fees
            + self.legal_fees
            + self.bank_fees
            + self.insurance_fees
            + self.other_expenses
        )


@dataclass(frozen=True)
class SCI:
    id: str
    name: str
    property_ids: tuple[str, ...] = ()
    capital: Decimal = Decimal("1000")
    tax_parameters: SCITaxParameters = field(default_factory=SCITaxParameters)
