"""Numeric policy and raw annuity formulas.

Every engine function takes a ``NumericPolicy`` and runs its Decimal arithmetic
inside ``policy.apply()``, a local decimal context. Nothing here touches the
global context, so results do not depend on what the caller configured.
"""

from dataclasses import dataclass
from decimal import Context, Decimal, ROUND_CEILING, ROUND_HALF_UP, localcontext

from sondertilgung.config import Settings, settings

TWO_PLACES = Decimal("0.01")
FOUR_PLACES = Decimal("0.0001")
MONTHS_PER_YEAR = 12
HUNDRED = Decimal("100")

# Guards ceil() against 83.9999999... style representation noise
_CEIL_SLACK = Decimal("1E-9")


def _default(name: str):
    """Class-level default of a ``Settings`` field, ignoring env and .env overrides."""
    return Settings.model_fields[name].default


@dataclass(frozen=True)
class NumericPolicy:
    precision: int = _default("decimal_precision")
    rounding: str = _default("decimal_rounding")
    payment_tolerance: Decimal = _default("payment_tolerance")
    consistency_tolerance: Decimal = _default("consistency_tolerance")
    rate_search_lower: Decimal = _default("rate_search_lower")
    rate_search_upper: Decimal = _default("rate_search_upper")
    rate_search_max_iterations: int = _default("rate_search_max_iterations")
    safety_term_multiplier: int = _default("safety_term_multiplier")

    @classmethod
    def from_settings(cls, source: Settings = settings) -> "NumericPolicy":
        return cls(
            precision=source.decimal_precision,
            rounding=source.decimal_rounding,
            payment_tolerance=source.payment_tolerance,
            consistency_tolerance=source.consistency_tolerance,
            rate_search_lower=source.rate_search_lower,
            rate_search_upper=source.rate_search_upper,
            rate_search_max_iterations=source.rate_search_max_iterations,
            safety_term_multiplier=source.safety_term_multiplier,
        )

    def context(self) -> Context:
        return Context(prec=self.precision, rounding=self.rounding)

    def apply(self):
        """Context manager running the enclosed block under this policy."""
        return localcontext(self.context())


DEFAULT_POLICY = NumericPolicy.from_settings()


def to_cents(value: Decimal) -> int:
    """Round a EUR amount half-up to whole cents."""
    return int((value * HUNDRED).quantize(Decimal("1"), ROUND_HALF_UP))


def ceil_months(value: Decimal) -> int:
    return int((value - _CEIL_SLACK).to_integral_value(ROUND_CEILING))


def annuity_factor(monthly_rate: Decimal, months: int) -> Decimal:
    """(1 + c)^n"""
    return (1 + monthly_rate) ** months


def annuity_payment(amount: Decimal, monthly_rate: Decimal, months: int) -> Decimal:
    """Level payment that retires ``amount`` in ``months`` instalments.

    P = L * c * (1 + c)^n / ((1 + c)^n - 1), degrading to L / n at c == 0.
    Raises ZeroDivisionError only for a degenerate factor; callers turn that
    into a MathematicalError.
    """
    if monthly_rate == 0:
        return amount / months
    factor = annuity_factor(monthly_rate, months)
    return amount * monthly_rate * factor / (factor - 1)


def months_to_repay(balance: Decimal, monthly_rate: Decimal, payment: Decimal) -> Decimal:
    """Fractional number of instalments left: -ln(1 - B*c/P) / ln(1 + c).

    Callers must make sure ``payment`` exceeds the interest on ``balance``.
    """
    if monthly_rate == 0:
        return balance / payment
    ratio = balance * monthly_rate / payment
    return -(1 - ratio).ln() / (1 + monthly_rate).ln()
