"""Validated primitive value types.

Money, Percentage, InterestRate, MonthCount and PaymentMonth are distinct frozen
types even though each wraps a single number. Build them through their
factories (``Money.from_euros``, ``InterestRate.from_percent`` ...), which
return ``Ok``/``Err`` instead of raising.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Union

from sondertilgung.models.errors import CalculationError, ErrorKind, invalid
from sondertilgung.models.result import Err, Ok, Result
from sondertilgung.numeric import HUNDRED, MONTHS_PER_YEAR, to_cents

Number = Union[Decimal, int, float, str]

MAX_MONEY_CENTS = 99_999_999_900  # 999,999,999.00 EUR
MIN_INTEREST_RATE = Decimal("0")
MAX_INTEREST_RATE = Decimal("25")
MIN_MONTHS = 1
MAX_MONTHS = 480  # 40 years


def as_decimal(value: Number) -> Decimal | None:
    """Parse a number into a finite Decimal, or None."""
    if isinstance(value, bool):
        return None
    try:
        parsed = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


@dataclass(frozen=True, order=True)
class Money:
    """Non-negative EUR amount held as integer cents."""
    cents: int

    @classmethod
    def from_cents(cls, cents: int) -> Result["Money", CalculationError]:
        if isinstance(cents, bool) or not isinstance(cents, int):
            return Err(invalid(ErrorKind.INVALID_AMOUNT, f"cents must be an integer, got {cents!r}"))
        if cents < 0:
            return Err(invalid(ErrorKind.NEGATIVE_AMOUNT, f"amount {cents} cents is negative", value=cents))
        if cents > MAX_MONEY_CENTS:
            return Err(invalid(
                ErrorKind.EXCEEDS_MAXIMUM,
                f"amount {cents} cents exceeds maximum",
                value=cents,
                max_allowed=MAX_MONEY_CENTS,
            ))
        return Ok(cls(cents))

    @classmethod
    def from_euros(cls, euros: Number) -> Result["Money", CalculationError]:
        value = as_decimal(euros)
        if value is None:
            return Err(invalid(ErrorKind.INVALID_AMOUNT, f"not a finite amount: {euros!r}"))
        if value < 0:
            return Err(invalid(ErrorKind.NEGATIVE_AMOUNT, f"amount {value} is negative", value=value))
        if value * HUNDRED > MAX_MONEY_CENTS:
            return Err(invalid(
                ErrorKind.EXCEEDS_MAXIMUM,
                f"amount {value} exceeds maximum",
                value=value,
                max_allowed=MAX_MONEY_CENTS,
            ))
        return cls.from_cents(to_cents(value))

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    @property
    def euros(self) -> Decimal:
        return Decimal(self.cents) / HUNDRED

    def is_zero(self) -> bool:
        return self.cents == 0

    def add(self, other: "Money") -> Result["Money", CalculationError]:
        return Money.from_cents(self.cents + other.cents)

    def subtract(self, other: "Money") -> Result["Money", CalculationError]:
        return Money.from_cents(self.cents - other.cents)

    def multiply(self, factor: Number) -> Result["Money", CalculationError]:
        value = as_decimal(factor)
        if value is None or value < 0:
            return Err(invalid(ErrorKind.INVALID_AMOUNT, f"invalid multiplier {factor!r}"))
        return Money.from_euros(self.euros * value)

    def __str__(self) -> str:
        return f"{self.euros:.2f} EUR"


@dataclass(frozen=True, order=True)
class Percentage:
    """A share between 0 and 100 (inclusive)."""
    value: Decimal

    @classmethod
    def from_value(cls, value: Number) -> Result["Percentage", CalculationError]:
        parsed = as_decimal(value)
        if parsed is None:
            return Err(invalid(ErrorKind.INVALID_PERCENTAGE, f"not a finite percentage: {value!r}"))
        if parsed < 0 or parsed > HUNDRED:
            return Err(invalid(
                ErrorKind.INVALID_PERCENTAGE,
                f"percentage {parsed} outside 0..100",
                value=parsed,
            ))
        return Ok(cls(parsed))

    @classmethod
    def from_fraction(cls, fraction: Number) -> Result["Percentage", CalculationError]:
        parsed = as_decimal(fraction)
        if parsed is None:
            return Err(invalid(ErrorKind.INVALID_PERCENTAGE, f"not a finite fraction: {fraction!r}"))
        return cls.from_value(parsed * HUNDRED)

    @property
    def fraction(self) -> Decimal:
        return self.value / HUNDRED


@dataclass(frozen=True, order=True)
class InterestRate:
    """Nominal annual rate, stored in percent (3.5 means 3.5 %)."""
    percent: Decimal

    @classmethod
    def from_percent(cls, percent: Number) -> Result["InterestRate", CalculationError]:
        parsed = as_decimal(percent)
        if parsed is None:
            return Err(invalid(ErrorKind.INVALID_INTEREST_RATE, f"not a finite rate: {percent!r}"))
        if parsed < MIN_INTEREST_RATE or parsed > MAX_INTEREST_RATE:
            return Err(invalid(
                ErrorKind.INVALID_INTEREST_RATE,
                f"rate {parsed}% outside {MIN_INTEREST_RATE}..{MAX_INTEREST_RATE}%",
                value=parsed,
            ))
        return Ok(cls(parsed))

    @classmethod
    def from_fraction(cls, fraction: Number) -> Result["InterestRate", CalculationError]:
        parsed = as_decimal(fraction)
        if parsed is None:
            return Err(invalid(ErrorKind.INVALID_INTEREST_RATE, f"not a finite rate: {fraction!r}"))
        return cls.from_percent(parsed * HUNDRED)

    @property
    def fraction(self) -> Decimal:
        return self.percent / HUNDRED

    @property
    def monthly(self) -> Decimal:
        """Monthly rate used by the simulation (annual / 12)."""
        return self.fraction / MONTHS_PER_YEAR

    def is_zero(self) -> bool:
        return self.percent == 0

    def add_points(self, points: Number) -> Result["InterestRate", CalculationError]:
        """Shift by percentage points (+1 turns 3 % into 4 %)."""
        parsed = as_decimal(points)
        if parsed is None:
            return Err(invalid(ErrorKind.INVALID_INTEREST_RATE, f"not a finite adjustment: {points!r}"))
        return InterestRate.from_percent(self.percent + parsed)


def _check_months(months: int, kind: ErrorKind, label: str) -> CalculationError | None:
    if isinstance(months, bool) or not isinstance(months, int):
        return invalid(kind, f"{label} must be an integer, got {months!r}")
    if months < MIN_MONTHS or months > MAX_MONTHS:
        return invalid(
            kind,
            f"{label} {months} outside {MIN_MONTHS}..{MAX_MONTHS}",
            value=months,
            min_allowed=MIN_MONTHS,
            max_allowed=MAX_MONTHS,
        )
    return None


@dataclass(frozen=True, order=True)
class MonthCount:
    """A duration in months (loan term, term reduction, break-even horizon)."""
    months: int

    @classmethod
    def of(cls, months: int) -> Result["MonthCount", CalculationError]:
        error = _check_months(months, ErrorKind.INVALID_TERM, "term")
        return Err(error) if error else Ok(cls(months))

    @classmethod
    def from_years(cls, years: int) -> Result["MonthCount", CalculationError]:
        if isinstance(years, bool) or not isinstance(years, int):
            return Err(invalid(ErrorKind.INVALID_TERM, f"years must be an integer, got {years!r}"))
        return cls.of(years * MONTHS_PER_YEAR)

    @property
    def years(self) -> Decimal:
        return Decimal(self.months) / MONTHS_PER_YEAR

    def __int__(self) -> int:
        return self.months


@dataclass(frozen=True, order=True)
class PaymentMonth:
    """A 1-indexed month in the payment schedule (month 1 is the first instalment)."""
    number: int

    @classmethod
    def of(cls, number: int) -> Result["PaymentMonth", CalculationError]:
        error = _check_months(number, ErrorKind.INVALID_PAYMENT_MONTH, "payment month")
        return Err(error) if error else Ok(cls(number))

    @classmethod
    def from_year_and_month(cls, year: int, month_in_year: int) -> Result["PaymentMonth", CalculationError]:
        if not 1 <= month_in_year <= MONTHS_PER_YEAR or year < 1:
            return Err(invalid(
                ErrorKind.INVALID_PAYMENT_MONTH,
                f"invalid year {year} / month {month_in_year}",
                year=year,
                month_in_year=month_in_year,
            ))
        return cls.of((year - 1) * MONTHS_PER_YEAR + month_in_year)

    @property
    def year(self) -> int:
        """Loan year this month falls in (months 1-12 are year 1)."""
        return (self.number - 1) // MONTHS_PER_YEAR + 1

    @property
    def month_in_year(self) -> int:
        return (self.number - 1) % MONTHS_PER_YEAR + 1

    def shift(self, months: int) -> Result["PaymentMonth", CalculationError]:
        return PaymentMonth.of(self.number + months)

    def __int__(self) -> int:
        return self.number
