"""Internal rate of return on monthly cash flows using scipy.

Pure functions. No I/O.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from scipy.optimize import brentq

from sondertilgung.models.errors import CalculationError, ErrorKind, invalid
from sondertilgung.models.result import Err, Ok, Result
from sondertilgung.numeric import FOUR_PLACES, MONTHS_PER_YEAR

logger = logging.getLogger(__name__)

EIGHT_PLACES = Decimal("0.00000001")


def compute_irr(
    cash_flows: list[Decimal], lower: float = -0.5, upper: float = 1.0
) -> Result[Decimal, CalculationError]:
    """Periodic IRR of ``cash_flows``; cash_flows[t] falls at the end of period t.

    Uses Brent's method on the NPV function. The default bracket of
    -50 % to 100 % per period keeps (1 + r)^t finite over a 40-year
    monthly horizon.
    """
    if len(cash_flows) < 2:
        return Err(invalid(ErrorKind.INVALID_PARAMETERS, "need at least two cash flows", "compute_irr"))
    if not any(cf < 0 for cf in cash_flows) or not any(cf > 0 for cf in cash_flows):
        return Err(invalid(
            ErrorKind.MATHEMATICAL_ERROR,
            "cash flows must change sign for an IRR to exist",
            "compute_irr",
            periods=len(cash_flows),
        ))

    # Convert to float for scipy
    cf_float = [float(cf) for cf in cash_flows]

    def npv(rate: float) -> float:
        return sum(cf / (1 + rate) ** t for t, cf in enumerate(cf_float))

    try:
        irr = brentq(npv, lower, upper, xtol=1e-12, maxiter=1000)
    except ValueError as exc:
        logger.warning("IRR search failed over %d periods: %s", len(cash_flows), exc)
        return Err(invalid(
            ErrorKind.MATHEMATICAL_ERROR,
            f"no IRR between {lower} and {upper}: {exc}",
            "compute_irr",
            periods=len(cash_flows),
        ))
    return Ok(Decimal(str(irr)).quantize(EIGHT_PLACES, ROUND_HALF_UP))


def annualize(monthly_rate: Decimal) -> tuple[Decimal, Decimal]:
    """Nominal (rate x 12) and effective ((1 + rate)^12 - 1) annual rates."""
    nominal = (monthly_rate * MONTHS_PER_YEAR).quantize(FOUR_PLACES, ROUND_HALF_UP)
    effective = ((1 + monthly_rate) ** MONTHS_PER_YEAR - 1).quantize(FOUR_PLACES, ROUND_HALF_UP)
    return nominal, effective
