from dataclasses import replace
from datetime import date
from decimal import Decimal

from immotax.engine.sci import (
    allocate,
    allocation_weights,
    building_value,
    compute_all_sci_tax,
    compute_sci_tax,
    corporate_tax,
    member_keys,
    property_allocated_is,
    property_depreciation,
    property_net_result_in_sci,
    sci_years,
)
from immotax.models.investment import Investment, TaxParameters, YearlyExpense
from immotax.models.sci import RentalType, SCITaxParameters


class TestCorporateTax:
    def test_two_brackets(self):
        reduced, standard = corporate_tax(Decimal("50000"), SCITaxParameters())
        assert reduced == Decimal("6375.00")
        assert standard == Decimal("1875.00")

    def test_below_threshold(self):
        reduced, standard = corporate_tax(Decimal("10000"), SCITaxParameters())
        assert reduced == Decimal("1500.00")
        assert standard == Decimal("0")

    def test_nothing_on_zero(self):
        assert corporate_tax(Decimal("0"), SCITaxParameters()) == (Decimal("0"), Decimal("0"))


class TestAllocation:
    def test_value_weights(self, sci_properties):
        weights = allocation_weights(sci_properties)
        assert weights == {"a": Decimal("0.75"), "b": Decimal("0.25")}

    def test_sci_value_overrides_price(self, sci_properties):
        revalued = [replace(sci_properties[0], sci_property_value=Decimal("100000")), sci_properties[1]]
        assert allocation_weights(revalued) == {"a": Decimal("0.5"), "b": Decimal("0.5")}

    def test_zero_total_value(self):
        empty = [
            Investment(id="x", project_start_date=date(2024, 1, 1), project_end_date=date(2024, 12, 31)),
            Investment(id="y", project_start_date=date(2024, 1, 1), project_end_date=date(2024, 12, 31)),
        ]
        assert allocation_weights(empty) == {"x": Decimal("0"), "y": Decimal("0")}
        assert allocate(Decimal("100"), allocation_weights(empty)) == {
            "x": Decimal("0.00"),
            "y": Decimal("0.00"),
        }

    def test_members_without_ids_kept_apart(self, sci, sci_properties):
        anonymous = [replace(p, id="") for p in sci_properties]
        assert member_keys(anonymous) == ["#0", "#1"]
        assert allocation_weights(anonymous) == {"#0": Decimal("0.75"), "#1": Decimal("0.25")}

        result = compute_sci_tax(sci, anonymous, 2024)
        contributions = result.property_contributions
        assert len(contributions) == 2
        assert result.total_is == Decimal("8250.00")
        assert contributions["#0"].allocated_is == Decimal("6187.50")
        assert contributions["#1"].allocated_is == Decimal("2062.50")
        assert sum(c.prorata_weight for c in contributions.values()) == Decimal("1")

    def test_repeated_ids_kept_apart(self, sci, sci_properties):
        twins = [sci_properties[0], replace(sci_properties[1], id="a")]
        assert member_keys(twins) == ["a", "a#1"]
        result = compute_sci_tax(sci, twins, 2024)
        assert sum(c.allocated_is for c in result.property_contributions.values()) == result.total_is
        assert result.property_contributions["a#1"].allocated_is == Decimal("2062.50")

    def test_cents_sum_exactly(self):
        third = Decimal(1) / Decimal(3)
        shares = allocate(Decimal("100.00"), {"a": third, "b": third, "c": third})
        assert sum(shares.values()) == Decimal("100.00")
        assert shares["c"] == Decimal("33.34")


class TestDepreciation:
    def test_default_building_share(self, sci_properties):
        assert building_value(sci_properties[0]) == Decimal("240000.00")

    def test_explicit_building_value(self, sci_properties):
        prop = replace(sci_properties[0], tax_parameters=TaxParameters(building_value=Decimal("200000")))
        assert building_value(prop) == Decimal("200000")

    def test_components_on_own_horizons(self, sci_properties):
        prop = replace(
            sci_properties[1],
            renovation_costs=Decimal("10000"),
            tax_parameters=TaxParameters(furniture_value=Decimal("5000")),
        )
        params = SCITaxParameters()
        # 80000/25 + 5000/10 + 10000/10
        assert property_depreciation(prop, 2024, params) == Decimal("4700.00")
        # Furniture and works done after ten years
        assert property_depreciation(prop, 2034, params) == Decimal("3200.00")
        assert property_depreciation(prop, 2049, params) == Decimal("0")

    def test_prorated(self, sci_properties):
        assert property_depreciation(
            sci_properties[1], 2024, SCITaxParameters(), Decimal("0.5")
        ) == Decimal("1600.00")


class TestConsolidatedTax:
    def test_reference_scenario(self, sci, sci_properties):
        """50K taxable: 6,375 + 1,875 = 8,250, split 75/25."""
        result = compute_sci_tax(sci, sci_properties, 2024)
        assert result.total_revenues == Decimal("62800.00")
        assert result.total_amortization == Decimal("12800.00")
        assert result.taxable_income == Decimal("50000.00")
        assert result.is_at_reduced_rate == Decimal("6375.00")
        assert result.is_at_standard_rate == Decimal("1875.00")
        assert result.total_is == Decimal("8250.00")
        assert result.property_contributions["a"].allocated_is == Decimal("6187.50")
        assert result.property_contributions["b"].allocated_is == Decimal("2062.50")

    def test_allocations_and_weights_sum(self, sci, sci_properties):
        result = compute_sci_tax(sci, sci_properties, 2024)
        contributions = result.property_contributions.values()
        assert sum(c.allocated_is for c in contributions) == result.total_is
        assert sum(c.prorata_weight for c in contributions) == Decimal("1")

    def test_allocation_ignores_own_result(self, sci, sci_properties):
        """A loss-making property still carries its value share of the tax."""
        losing = replace(
            sci_properties[1],
            expenses=(YearlyExpense(year=2024, rent=Decimal("0"), repairs=Decimal("5000")),),
        )
        result = compute_sci_tax(sci, [sci_properties[0], losing], 2024)
        assert result.property_contributions["b"].contribution_to_result < 0
        assert result.property_contributions["b"].allocated_is == result.total_is * Decimal("0.25")

    def test_operating_costs(self, sci_with_costs, sci_properties):
        result = compute_sci_tax(sci_with_costs, sci_properties, 2024)
        assert result.operating_expenses == Decimal("3000.00")
        assert result.taxable_income == Decimal("47000.00")

    def test_operating_costs_follow_max_coverage(self, sci_with_costs, sci_properties):
        late = [replace(p, project_start_date=date(2024, 7, 1)) for p in sci_properties]
        result = compute_sci_tax(sci_with_costs, late, 2024)
        assert result.coverage == Decimal(184) / Decimal(366)
        assert result.operating_expenses == Decimal("1508.20")

        mixed = [late[0], sci_properties[1]]
        assert compute_sci_tax(sci_with_costs, mixed, 2024).operating_expenses == Decimal("3000.00")

    def test_furnished_rental_type(self, sci, sci_properties):
        furnished = replace(sci, tax_parameters=SCITaxParameters(rental_type=RentalType.FURNISHED))
        result = compute_sci_tax(furnished, sci_properties, 2024)
        assert result.total_revenues == Decimal("0")
        assert result.deficit_generated == Decimal("12800.00")

    def test_tenant_charges_reduce_expenses(self, sci, sci_properties):
        prop = replace(
            sci_properties[1],
            expenses=(YearlyExpense(
                year=2024,
                rent=Decimal("12800"),
                condo_fees=Decimal("1000"),
                tenant_charges=Decimal("400"),
            ),),
        )
        result = compute_sci_tax(sci, [sci_properties[0], prop], 2024)
        assert result.property_contributions["b"].expenses == Decimal("600.00")

    def test_loan_interest_deducted(self, sci, sci_properties):
        leveraged = replace(
            sci_properties[0],
            loan_amount=Decimal("200000"),
            interest_rate=Decimal("3"),
            loan_duration=20,
        )
        result = compute_sci_tax(sci, [leveraged, sci_properties[1]], 2024)
        assert result.property_contributions["a"].expenses > Decimal("5000")
        assert result.taxable_income < Decimal("50000")

    def test_loss_creates_unlimited_deficit(self, sci, sci_properties):
        empty_year = [replace(p, expenses=()) for p in sci_properties]
        result = compute_sci_tax(sci, empty_year, 2024)
        assert result.taxable_income == Decimal("0")
        assert result.total_is == Decimal("0")
        assert result.deficit_generated == Decimal("12800.00")
        assert result.deficit_carried_forward == Decimal("12800.00")

    def test_previous_deficit_consumed(self, sci, sci_properties):
        with_deficit = replace(sci, tax_parameters=SCITaxParameters(previous_deficits=Decimal("20000")))
        result = compute_sci_tax(with_deficit, sci_properties, 2024)
        assert result.deficit_used == Decimal("20000")
        assert result.taxable_income == Decimal("30000.00")
        assert result.deficit_carried_forward == Decimal("0")


class TestAllYears:
    def test_years_are_union_of_members(self, sci_properties):
        extra = replace(
            sci_properties[1],
            project_start_date=date(2022, 1, 1),
            project_end_date=date(2023, 12, 31),
        )
        assert sci_years([sci_properties[0], extra]) == tuple(range(2022, 2031))

    def test_deficit_threads_through_years(self, sci, sci_properties):
        first_year_empty = [
            replace(p, expenses=tuple(e for e in p.expenses if e.year != 2024))
            for p in sci_properties
        ]
        analysis = compute_all_sci_tax(sci, first_year_empty)
        assert analysis.years == tuple(range(2024, 2031))
        assert analysis.results[2024].deficit_carried_forward == Decimal("12800.00")
        assert analysis.results[2025].deficit_used == Decimal("12800.00")
        assert analysis.results[2025].taxable_income == Decimal("37200.00")
        assert analysis.final_deficit == Decimal("0")

    def test_total_is(self, sci, sci_properties):
        analysis = compute_all_sci_tax(sci, sci_properties)
        assert analysis.total_is == Decimal("8250.00") * 7


class TestPropertyHelpers:
    def test_allocated_is(self, sci, sci_properties):
        result = compute_sci_tax(sci, sci_properties, 2024)
        assert property_allocated_is(result, "a") == Decimal("6187.50")
        assert property_allocated_is(result, "missing") == Decimal("0")

    def test_net_result(self, sci, sci_properties):
        result = compute_sci_tax(sci, sci_properties, 2024)
        assert property_net_result_in_sci(result, "b") == Decimal("12800.00") - Decimal("2062.50")
        assert property_net_result_in_sci(result, "missing") == Decimal("0")
