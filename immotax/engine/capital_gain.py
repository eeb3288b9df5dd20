"""Plus-value immobilière on sale.

Private-individual regime (bare rentals and LMNP): holding-period rebates,
19% income tax and 17.2% social levies on the rebated gain. LMNP réel adds
the recapture of deducted depreciation at the marginal rate. LMP splits the
gain into a short-term part taxed at the marginal rate and a long-term part.

Pure functions. No I/O.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from immotax.config import settings
from immotax.models.investment import TaxRegime
from immotax.models.results import CapitalGainResult

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Holding-period rebate schedules (percent)
INCOME_REBATE_PER_YEAR = Decimal("6")  # Years 6 to 21
SOCIAL_REBATE_PER_YEAR = Decimal("1.65")  # Years 6 to 21
SOCIAL_REBATE_AT_22 = Decimal("28")
SOCIAL_REBATE_PER_YEAR_AFTER_22 = Decimal("9")  # Years 23 to 30

LMP_SHORT_TERM_MAX_YEARS = 2


def _q(amount: Decimal) -> Decimal:
    return amount.quantize(TWO_PLACES, ROUND_HALF_UP)


def income_tax_rebate(holding_years: int) -> Decimal:
    """Abattement pour durée de détention on the income-tax base, in percent."""
    if holding_years <= 5:
        return ZERO
    if holding_years <= 21:
        return INCOME_REBATE_PER_YEAR * (holding_years - 5)
    return HUNDRED


def social_rebate(holding_years: int) -> Decimal:
    """Abattement on the social-levy base, in percent. Full exemption after 30 years."""
    if holding_years <= 5:
        return ZERO
    if holding_years <= 21:
        return SOCIAL_REBATE_PER_YEAR * (holding_years - 5)
    if holding_years <= 30:
        return SOCIAL_REBATE_AT_22 + SOCIAL_REBATE_PER_YEAR_AFTER_22 * (holding_years - 22)
    return HUNDRED


def _standard_taxation(gain: Decimal, holding_years: int) -> dict:
    income_pct = income_tax_rebate(holding_years)
    social_pct = social_rebate(holding_years)
    taxable_income = _q(gain * (HUNDRED - income_pct) / HUNDRED)
    taxable_social = _q(gain * (HUNDRED - social_pct) / HUNDRED)
    return {
        "income_rebate_pct": income_pct,
        "social_rebate_pct": social_pct,
        "taxable_gain_income": taxable_income,
        "taxable_gain_social": taxable_social,
        "income_tax": _q(taxable_income * settings.capital_gain_income_rate / HUNDRED),
        "social_charges": _q(taxable_social * settings.capital_gain_social_rate / HUNDRED),
    }


def _lmp_capital_gain(
    regime: TaxRegime,
    basis: Decimal,
    sale_price: Decimal,
    holding_years: int,
    marginal_rate: Decimal,
    accumulated_depreciation: Decimal,
) -> CapitalGainResult:
    """Professional gain, measured against net book value (basis less deducted depreciation).

    Depreciation already deducted comes back as a short-term gain at the
    marginal rate, even when the property sells at cost. The whole gain is
    short-term within the first two years.
    """
    gross = _q(sale_price - (basis - accumulated_depreciation))
    if gross <= 0:
        return CapitalGainResult(
            regime=regime,
            holding_years=holding_years,
            gross_capital_gain=gross,
            net_capital_gain=gross,
        )

    if holding_years <= LMP_SHORT_TERM_MAX_YEARS:
        short_term = gross
    else:
        short_term = min(accumulated_depreciation, gross)
    long_term = gross - short_term
    short_term_tax = _q(short_term * marginal_rate / HUNDRED)
    standard = _standard_taxation(long_term, holding_years)
    standard["income_tax"] += short_term_tax
    total = standard["income_tax"] + standard["social_charges"]
    return CapitalGainResult(
        regime=regime,
        holding_years=holding_years,
        gross_capital_gain=gross,
        short_term_gain=short_term,
        long_term_gain=long_term,
        short_term_tax=short_term_tax,
        **standard,
        total_tax=total,
        net_capital_gain=gross - total,
    )


def compute_capital_gain(
    regime: TaxRegime,
    basis: Decimal,
    sale_price: Decimal,
    holding_years: int,
    marginal_rate: Decimal,
    accumulated_depreciation: Decimal = ZERO,
    is_lmp: bool = False,
) -> CapitalGainResult:
    """Capital-gain tax of one regime.

    Args:
        regime: Rental regime the property was held under
        basis: Prix d'acquisition corrigé (price + acquisition fees + improvement works)
        sale_price: Sale price net of sale agency fees
        holding_years: Sale year minus acquisition year
        marginal_rate: Owner's marginal income tax rate, percent
        accumulated_depreciation: Depreciation actually deducted under réel BIC
        is_lmp: Professional furnished renter (only meaningful for furnished regimes)
    """
    holding_years = max(0, holding_years)
    accumulated_depreciation = max(ZERO, accumulated_depreciation)
    if regime.is_furnished and is_lmp:
        return _lmp_capital_gain(
            regime, basis, sale_price, holding_years, marginal_rate, accumulated_depreciation
        )

    gross = _q(sale_price - basis)
    if gross <= 0:
        return CapitalGainResult(
            regime=regime,
            holding_years=holding_years,
            gross_capital_gain=gross,
            net_capital_gain=gross,
        )

    standard = _standard_taxation(gross, holding_years)
    depreciation_taxable = ZERO
    depreciation_tax = ZERO
    if regime is TaxRegime.REEL_BIC and accumulated_depreciation > 0:
        depreciation_taxable = min(accumulated_depreciation, gross)
        depreciation_tax = _q(depreciation_taxable * marginal_rate / HUNDRED)
        logger.debug(
            "Depreciation recapture on sale: %s taxed %s", depreciation_taxable, depreciation_tax
        )

    standard["income_tax"] += depreciation_tax
    total = standard["income_tax"] + standard["social_charges"]
    return CapitalGainResult(
        regime=regime,
        holding_years=holding_years,
        gross_capital_gain=gross,
        depreciation_taxable=depreciation_taxable,
        depreciation_tax=depreciation_tax,
        **standard,
        total_tax=total,
        net_capital_gain=gross - total,
    )
