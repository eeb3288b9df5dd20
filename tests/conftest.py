"""Canonical test fixtures used across all engine tests.

Bare rental: 200K flat bought Jan 2024, held ten full years, 180K loan at
3% over 20 years, 12K yearly rent, 2K deductible charges.
Furnished rental: same flat let furnished, 160K building and 8K furniture
depreciated.
SCI: two unleveraged flats valued 300K and 100K.
"""

import pytest
from datetime import date
from decimal import Decimal

from immotax.models.investment import Investment, TaxParameters, YearlyExpense
from immotax.models.sci import SCI, SCITaxParameters


def yearly(year: int, **amounts) -> YearlyExpense:
    return YearlyExpense(year=year, **{k: Decimal(str(v)) for k, v in amounts.items()})


@pytest.fixture
def bare_investment() -> Investment:
    """Ten full years of bare rental."""
    return Investment(
        id="flat-1",
        name="Lyon T2",
        project_start_date=date(2024, 1, 1),
        project_end_date=date(2033, 12, 31),
        purchase_price=Decimal("200000"),
        agency_fees=Decimal("5000"),
        notary_fees=Decimal("15000"),
        loan_amount=Decimal("180000"),
        interest_rate=Decimal("3"),
        loan_duration=20,
        appreciation_value=Decimal("2"),
        expenses=tuple(
            yearly(year, rent=12000, property_tax=1000, condo_fees=800, property_insurance=200)
            for year in range(2024, 2034)
        ),
    )


@pytest.fixture
def furnished_investment() -> Investment:
    return Investment(
        id="flat-2",
        name="Lyon T2 meublé",
        project_start_date=date(2024, 1, 1),
        project_end_date=date(2033, 12, 31),
        purchase_price=Decimal("200000"),
        notary_fees=Decimal("15000"),
        expenses=tuple(
            yearly(year, furnished_rent=14400, property_tax=1000, condo_fees=1000)
            for year in range(2024, 2034)
        ),
        tax_parameters=TaxParameters(
            building_value=Decimal("160000"),
            furniture_value=Decimal("8000"),
        ),
    )


@pytest.fixture
def sci_properties() -> list[Investment]:
    """Consolidated taxable income of 50K in every year: 62.8K rent, 12.8K depreciation."""
    return [
        Investment(
            id="a",
            name="Immeuble A",
            project_start_date=date(2024, 1, 1),
            project_end_date=date(2030, 12, 31),
            purchase_price=Decimal("300000"),
            expenses=tuple(yearly(year, rent=50000) for year in range(2024, 2031)),
        ),
        Investment(
            id="b",
            name="Studio B",
            project_start_date=date(2024, 1, 1),
            project_end_date=date(2030, 12, 31),
            purchase_price=Decimal("100000"),
            expenses=tuple(yearly(year, rent=12800) for year in range(2024, 2031)),
        ),
    ]


@pytest.fixture
def sci() -> SCI:
    return SCI(id="sci-1", name="SCI Famille", property_ids=("a", "b"))


@pytest.fixture
def sci_with_costs() -> SCI:
    """3K of yearly entity running costs."""
    return SCI(
        id="sci-2",
        name="SCI Frais",
        property_ids=("a", "b"),
        tax_parameters=SCITaxParameters(
            accounting_fees=Decimal("1800"),
            legal_fees=Decimal("500"),
            bank_fees=Decimal("200"),
            insurance_fees=Decimal("300"),
            other_expenses=Decimal("200"),
        ),
    )
