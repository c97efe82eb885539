from dataclasses import dataclass
from decimal import Decimal

from sondertilgung.models.plan import ExtraPaymentPlan
from sondertilgung.models.values import InterestRate, Money, MonthCount


@dataclass(frozen=True)
class SondertilgungImpact:
    original_total_interest: Money
    new_total_interest: Money
    interest_saved: Money
    original_term: MonthCount
    new_term: MonthCount
    term_reduction_months: int
    total_extra_payments: Money
    effective_interest_rate: Decimal  # interest saved per 100 EUR of extra payment


@dataclass(frozen=True)
class StrategyResult:
    plan: ExtraPaymentPlan
    impact: SondertilgungImpact


@dataclass(frozen=True)
class InterestSensitivity:
    base_rate: InterestRate
    low_rate: InterestRate
    high_rate: InterestRate
    base_savings: Money
    low_rate_savings: Money
    high_rate_savings: Money
    sensitivity: Decimal  # percent change in savings per percentage point


@dataclass(frozen=True)
class ExtraPaymentReturn:
    monthly_rate: Decimal
    annual_rate: Decimal  # nominal, monthly * 12
    effective_annual_rate: Decimal
    invested: Money
    interest_saved: Money
