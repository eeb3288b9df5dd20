"""Pydantic schemas normalizing raw investment payloads into engine dataclasses.

Payloads come from the persistence layer or a form, with camelCase or
snake_case keys and loosely typed values. Everything is parsed once here so
the engine only sees non-null Decimals with explicit defaults:

- missing, null, non-numeric, non-finite or negative amounts become 0
- percentage rates are clamped to [0, 100]
- loan duration is clamped to [1, 50] years (non-finite falls back to 20)
- unparsable dates fall back to today
- duplicate yearly records keep the last one; records without a year are dropped
- nested blocks that are null or not objects fall back to their defaults
- ids and names are coerced to text
"""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, ClassVar, Optional

from dateutil import parser as date_parser
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from immotax.config import settings
from immotax.models.investment import (
    AppreciationType,
    DeferralType,
    ExpenseProjection,
    Investment,
    TaxParameters,
    TaxRegime,
    YearlyExpense,
)
from immotax.models.sci import SCI, RentalType, SCITaxParameters

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


# ---- Lenient scalar parsing ----

def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    text = value.strip().replace(",", ".") if isinstance(value, str) else str(value)
    try:
        number = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def to_amount(value: Any) -> Decimal:
    number = _to_decimal(value)
    if number is None or number < 0:
        return ZERO
    return number


def to_rate(value: Any) -> Decimal:
    return min(HUNDRED, to_amount(value))


def to_loan_duration(value: Any) -> int:
    number = _to_decimal(value)
    if number is None:
        return settings.default_loan_duration_years
    years = int(number.to_integral_value())
    clamped = min(max(years, settings.loan_duration_min_years), settings.loan_duration_max_years)
    if clamped != years:
        logger.debug("Loan duration clamped from %s to %s years", years, clamped)
    return clamped


def to_count(value: Any) -> int:
    """Non-negative whole number (months, years of amortization)."""
    number = _to_decimal(value)
    if number is None or number < 0:
        return 0
    return int(number.to_integral_value())


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date_parser.isoparse(value.strip()).date()
        except (ValueError, OverflowError):
            return None
    return None


def to_date(value: Any) -> date:
    parsed = _parse_date(value)
    if parsed is None:
        logger.debug("Unparsable date %r, using today", value)
        return date.today()
    return parsed


def to_optional_date(value: Any) -> Optional[date]:
    return _parse_date(value)


def to_optional_year(value: Any) -> Optional[int]:
    number = _to_decimal(value)
    if number is None:
        return None
    return int(number.to_integral_value())


def to_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def to_text(value: Any) -> str:
    """Identifiers and labels: None becomes empty, anything else its string form."""
    if value is None:
        return ""
    return str(value).strip()


def to_text_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (str, int)):
        return [to_text(value)]
    if isinstance(value, (list, tuple, set)):
        return [to_text(item) for item in value if item is not None]
    logger.debug("Ignoring malformed id list %r", value)
    return []


def enum_or(enum_cls: type[Enum], default: Enum):
    """Before-validator accepting an enum member or value, `default` otherwise."""
    def parse(value: Any) -> Enum:
        if isinstance(value, enum_cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower().replace("_", "-")
            for member in enum_cls:
                if member.value.replace("_", "-") == normalized:
                    return member
        if value is not None:
            logger.debug("Unknown %s %r, using %s", enum_cls.__name__, value, default.value)
        return default
    return parse


Amount = Annotated[Decimal, BeforeValidator(to_amount)]
Rate = Annotated[Decimal, BeforeValidator(to_rate)]
Count = Annotated[int, BeforeValidator(to_count)]
LenientDate = Annotated[date, BeforeValidator(to_date)]
OptionalDate = Annotated[Optional[date], BeforeValidator(to_optional_date)]
OptionalYear = Annotated[Optional[int], BeforeValidator(to_optional_year)]
Flag = Annotated[bool, BeforeValidator(to_flag)]
Text = Annotated[str, BeforeValidator(to_text)]
TextList = Annotated[list[str], BeforeValidator(to_text_list)]


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    # Nested blocks replaced by their defaults when null or not an object
    _blocks: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def _malformed_blocks(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for name in cls._blocks:
            for key in (name, to_camel(name)):
                if key in data and not isinstance(data[key], (dict, BaseModel)):
                    if data[key] is not None:
                        logger.warning("Ignoring malformed %s: %r", key, data[key])
                    del data[key]
        return data


# ---- Yearly records ----

class YearlyExpenseIn(_Payload):
    year: OptionalYear = None

    rent: Amount = ZERO
    furnished_rent: Amount = ZERO
    tenant_charges: Amount = ZERO
    tax_benefit: Amount = ZERO

    property_tax: Amount = ZERO
    condo_fees: Amount = ZERO
    property_insurance: Amount = ZERO
    management_fees: Amount = ZERO
    unpaid_rent_insurance: Amount = ZERO
    repairs: Amount = ZERO
    other_deductible: Amount = ZERO
    other_non_deductible: Amount = ZERO

    loan_payment: Amount = ZERO
    loan_insurance: Amount = ZERO
    interest: Amount = ZERO

    tax: Amount = ZERO
    deficit: Amount = ZERO

    def to_domain(self, year: Optional[int] = None) -> YearlyExpense:
        fields = self.model_dump()
        if year is not None:
            fields["year"] = year
        return YearlyExpense(**fields)


class ExpenseProjectionIn(_Payload):
    """Yearly growth rates (percent) and the base-year figures they apply to."""
    _blocks: ClassVar[tuple[str, ...]] = ("base",)

    base_year: OptionalYear = None
    base: Optional[YearlyExpenseIn] = None

    property_tax_increase: Rate = Decimal("2")
    condo_fees_increase: Rate = Decimal("2")
    property_insurance_increase: Rate = Decimal("1")
    management_fees_increase: Rate = Decimal("1")
    unpaid_rent_insurance_increase: Rate = Decimal("1")
    repairs_increase: Rate = Decimal("2")
    other_deductible_increase: Rate = Decimal("1")
    other_non_deductible_increase: Rate = Decimal("1")
    rent_increase: Rate = Decimal("2")
    furnished_rent_increase: Rate = Decimal("2")
    tenant_charges_increase: Rate = Decimal("2")
    tax_benefit_increase: Rate = Decimal("1")

    def to_domain(self, default_base_year: int) -> Optional[ExpenseProjection]:
        """None when no base figures were given."""
        if self.base is None:
            return None
        base_year = next(
            (y for y in (self.base_year, self.base.year) if y is not None), default_base_year
        )
        rates = self.model_dump(exclude={"base_year", "base"})
        return ExpenseProjection(
            base_year=base_year,
            base=self.base.to_domain(base_year),
            **rates,
        )


# ---- Investment ----

class TaxParametersIn(_Payload):
    tax_rate: Rate = Decimal("30")
    social_charges_rate: Rate = Decimal("17.2")

    building_value: Amount = ZERO
    building_amortization_years: Count = 25
    furniture_value: Amount = ZERO
    furniture_amortization_years: Count = 10
    works_value: Amount = ZERO
    works_amortization_years: Count = 10

    previous_deficit: Amount = ZERO
    deficit_limit: Amount = Field(default_factory=lambda: settings.deficit_limit)

    def to_domain(self) -> TaxParameters:
        return TaxParameters(**self.model_dump())


class InvestmentIn(_Payload):
    _blocks: ClassVar[tuple[str, ...]] = ("tax_parameters", "expense_projection")

    id: Text = ""
    name: Text = ""

    project_start_date: LenientDate = Field(default_factory=date.today)
    project_end_date: LenientDate = Field(default_factory=date.today)

    purchase_price: Amount = ZERO
    agency_fees: Amount = ZERO
    notary_fees: Amount = ZERO
    bank_fees: Amount = ZERO
    bank_guarantee_fees: Amount = ZERO
    mandatory_diagnostics: Amount = ZERO
    renovation_costs: Amount = ZERO
    improvement_works: Amount = ZERO

    loan_amount: Amount = ZERO
    interest_rate: Rate = ZERO
    loan_duration: Annotated[int, BeforeValidator(to_loan_duration)] = Field(
        default_factory=lambda: settings.default_loan_duration_years
    )
    insurance_rate: Rate = ZERO
    loan_start_date: OptionalDate = None
    deferral_type: Annotated[
        DeferralType, BeforeValidator(enum_or(DeferralType, DeferralType.NONE))
    ] = DeferralType.NONE
    deferred_period: Count = 0

    target_sale_year: OptionalYear = None
    appreciation_type: Annotated[
        AppreciationType, BeforeValidator(enum_or(AppreciationType, AppreciationType.ANNUAL))
    ] = AppreciationType.ANNUAL
    appreciation_value: Amount = ZERO
    sale_agency_fees: Amount = ZERO
    early_repayment_fees: Amount = ZERO

    selected_regime: Annotated[
        TaxRegime, BeforeValidator(enum_or(TaxRegime, TaxRegime.MICRO_FONCIER))
    ] = TaxRegime.MICRO_FONCIER
    is_lmp: Flag = Field(False, alias="isLMP")
    tax_parameters: TaxParametersIn = Field(default_factory=TaxParametersIn)

    sci_property_value: Optional[Amount] = None

    expenses: list[YearlyExpenseIn] = Field(default_factory=list)
    expense_projection: Optional[ExpenseProjectionIn] = None

    @model_validator(mode="before")
    @classmethod
    def _usable_expenses(cls, data: Any) -> Any:
        """Keep the yearly records that carry a year; drop the rest."""
        if not isinstance(data, dict) or "expenses" not in data:
            return data
        data = dict(data)
        records = data["expenses"]
        if not isinstance(records, (list, tuple)):
            if records is not None:
                logger.warning("Ignoring malformed expenses: %r", records)
            del data["expenses"]
            return data
        usable = []
        for record in records:
            if isinstance(record, YearlyExpenseIn):
                record = record.model_dump()
            if isinstance(record, dict) and to_optional_year(record.get("year")) is not None:
                usable.append(record)
            else:
                logger.warning("Dropping yearly record without a usable year: %r", record)
        data["expenses"] = usable
        return data

    @model_validator(mode="after")
    def _normalize(self) -> "InvestmentIn":
        if self.project_end_date < self.project_start_date:
            logger.warning(
                "Project %s ends (%s) before it starts (%s); end moved to start",
                self.id or self.name, self.project_end_date, self.project_start_date,
            )
            self.project_end_date = self.project_start_date

        by_year: dict[int, YearlyExpenseIn] = {}
        for expense in self.expenses:
            if expense.year in by_year:
                logger.warning(
                    "Duplicate yearly record %s for %s; keeping the last one",
                    expense.year, self.id or self.name,
                )
            by_year[expense.year] = expense
        self.expenses = [by_year[year] for year in sorted(by_year)]
        return self

    def to_domain(self) -> Investment:
        projection = None
        if self.expense_projection is not None:
            projection = self.expense_projection.to_domain(self.project_start_date.year)
        return Investment(
            project_start_date=self.project_start_date,
            project_end_date=self.project_end_date,
            id=self.id,
            name=self.name,
            purchase_price=self.purchase_price,
            agency_fees=self.agency_fees,
            notary_fees=self.notary_fees,
            bank_fees=self.bank_fees,
            bank_guarantee_fees=self.bank_guarantee_fees,
            mandatory_diagnostics=self.mandatory_diagnostics,
            renovation_costs=self.renovation_costs,
            improvement_works=self.improvement_works,
            loan_amount=self.loan_amount,
            interest_rate=self.interest_rate,
            loan_duration=self.loan_duration,
            insurance_rate=self.insurance_rate,
            loan_start_date=self.loan_start_date,
            deferral_type=self.deferral_type,
            deferred_period=self.deferred_period,
            target_sale_year=self.target_sale_year,
            appreciation_type=self.appreciation_type,
            appreciation_value=self.appreciation_value,
            sale_agency_fees=self.sale_agency_fees,
            early_repayment_fees=self.early_repayment_fees,
            selected_regime=self.selected_regime,
            is_lmp=self.is_lmp,
            tax_parameters=self.tax_parameters.to_domain(),
            sci_property_value=self.sci_property_value,
            expenses=tuple(e.to_domain() for e in self.expenses),
            expense_projection=projection,
        )


# ---- SCI ----

class SCITaxParametersIn(_Payload):
    standard_rate: Rate = Field(default_factory=lambda: settings.sci_standard_rate)
    reduced_rate: Rate = Field(default_factory=lambda: settings.sci_reduced_rate)
    reduced_rate_threshold: Amount = Field(
        default_factory=lambda: settings.sci_reduced_rate_threshold
    )
    previous_deficits: Amount = ZERO

    building_amortization_years: Count = 25
    furniture_amortization_years: Count = 10
    works_amortization_years: Count = 10

    accounting_fees: Amount = ZERO
    legal_fees: Amount = ZERO
    bank_fees: Amount = ZERO
    insurance_fees: Amount = ZERO
    other_expenses: Amount = ZERO

    rental_type: Annotated[
        RentalType, BeforeValidator(enum_or(RentalType, RentalType.UNFURNISHED))
    ] = RentalType.UNFURNISHED

    def to_domain(self) -> SCITaxParameters:
        return SCITaxParameters(**self.model_dump())


class SCIIn(_Payload):
    _blocks: ClassVar[tuple[str, ...]] = ("tax_parameters",)

    id: Text = ""
    name: Text = ""
    property_ids: TextList = Field(default_factory=list)
    capital: Amount = Decimal("1000")
    tax_parameters: SCITaxParametersIn = Field(default_factory=SCITaxParametersIn)

    def to_domain(self) -> SCI:
        return SCI(
            id=self.id,
            name=self.name,
            property_ids=tuple(self.property_ids),
            capital=self.capital,
            tax_parameters=self.tax_parameters.to_domain(),
        )


def parse_investment(payload: dict) -> Investment:
    return InvestmentIn.model_validate(payload).to_domain()


def parse_sci(payload: dict) -> SCI:
    return SCIIn.model_validate(payload).to_domain()
