from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Level for applications embedding the engine; the package installs no handlers
    log_level: str = "INFO"

    # Flat-allowance regimes (share of revenue deducted) and their revenue ceilings
    micro_foncier_allowance: Decimal = Decimal("0.30")
    micro_bic_allowance: Decimal = Decimal("0.50")
    micro_foncier_threshold: Decimal = Decimal("15000")
    micro_bic_threshold: Decimal = Decimal("72600")

    # Deficit foncier: yearly cap on a newly generated deficit, and carry horizon
    deficit_limit: Decimal = Decimal("10700")
    deficit_carry_years: int = 10

    # Capital gain flat rates (percent)
    capital_gain_income_rate: Decimal = Decimal("19")
    capital_gain_social_rate: Decimal = Decimal("17.2")

    # Corporate tax (SCI à l'IS), percent
    sci_reduced_rate: Decimal = Decimal("15")
    sci_standard_rate: Decimal = Decimal("25")
    sci_reduced_rate_threshold: Decimal = Decimal("42500")

    # Land is not depreciable: share of the price used when no building value is given
    default_building_share: Decimal = Decimal("0.80")

    # Input clamping
    default_loan_duration_years: int = 20
    loan_duration_min_years: int = 1
    loan_duration_max_years: int = 50

    # IRR search interval
    irr_lower_bound: float = -0.99
    irr_upper_bound: float = 10.0


settings = Settings()
