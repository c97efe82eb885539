from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "SONDERTILGUNG_",
    }

    # Decimal arithmetic
    decimal_precision: int = 28
    decimal_rounding: str = "ROUND_HALF_UP"

    # Tolerances (EUR)
    payment_tolerance: Decimal = Decimal("0.01")  # one cent
    consistency_tolerance: Decimal = Decimal("1.00")  # stated vs. annuity payment

    # Interest rate search (annual, as fraction)
    rate_search_lower: Decimal = Decimal("0.0001")
    rate_search_upper: Decimal = Decimal("0.30")
    rate_search_max_iterations: int = 100

    # Simulation stops after this many multiples of the nominal term
    safety_term_multiplier: int = 2


settings = Settings()
