"""Shared loan fixtures.

Reference loans:
  standard: 100,000 EUR at 5.6 % over 7 years (instalment 1,441.76)
  interest_free: 60,000 EUR at 0 % over 5 years (instalment 1,000.00)
  small: 15,000 EUR at 8 % over 10 years (instalment 181.99)
  sondertilgung: 50,000 EUR at 2 % over 5 years, 5,000 EUR extra in months 12 and 24
"""

import pytest

from sondertilgung.models.loan import LoanConfiguration
from sondertilgung.models.plan import ExtraPayment, ExtraPaymentPlan, YearlyLimit
from sondertilgung.models.values import InterestRate, Money, MonthCount, Percentage


def _loan(euros: str, percent: str, months: int) -> LoanConfiguration:
    return LoanConfiguration.from_terms(
        Money.from_euros(euros).unwrap(),
        InterestRate.from_percent(percent).unwrap(),
        MonthCount.of(months).unwrap(),
    ).unwrap()


def _plan(*payments: tuple[int, str], limit_percent: str | None = None) -> ExtraPaymentPlan:
    limit = YearlyLimit.unlimited()
    if limit_percent is not None:
        limit = YearlyLimit.of_percentage(Percentage.from_value(limit_percent).unwrap())
    extras = [ExtraPayment.of(month, euros).unwrap() for month, euros in payments]
    return ExtraPaymentPlan.create(limit, extras).unwrap()


@pytest.fixture
def standard_loan() -> LoanConfiguration:
    return _loan("100000", "5.6", 84)


@pytest.fixture
def interest_free_loan() -> LoanConfiguration:
    return _loan("60000", "0", 60)


@pytest.fixture
def small_loan() -> LoanConfiguration:
    return _loan("15000", "8.0", 120)


@pytest.fixture
def sondertilgung_loan() -> LoanConfiguration:
    return _loan("50000", "2", 60)


@pytest.fixture
def two_extra_payments() -> ExtraPaymentPlan:
    return _plan((12, "5000"), (24, "5000"))


@pytest.fixture
def make_loan():
    """Factory: ``make_loan("100000", "5.6", 84)``."""
    return _loan


@pytest.fixture
def make_plan():
    """Factory: ``make_plan((12, "5000"), limit_percent="5")``."""
    return _plan
