"""Amortization schedule data models."""

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sondertilgung.models.loan import LoanConfiguration, MonthlyPayment
from sondertilgung.models.plan import ExtraPayment, ExtraPaymentPlan
from sondertilgung.models.values import Money, MonthCount, PaymentMonth, Percentage
from sondertilgung.numeric import MONTHS_PER_YEAR


@dataclass(frozen=True)
class AmortizationEntry:
    """One simulated month.

    ``extra_payment`` is the plan's payment exactly as scheduled;
    ``applied_extra`` is the part of it that actually went to principal after
    capping at the outstanding balance.
    """
    month: PaymentMonth
    starting_balance: Money
    regular_payment: MonthlyPayment
    extra_payment: Optional[ExtraPayment]
    applied_extra: Money
    total_payment_amount: Money
    ending_balance: Money
    cumulative_interest: Money
    cumulative_principal: Money
    principal_percentage: Percentage  # share of this month's cash that went to principal
    remaining_months: int


@dataclass(frozen=True)
class PayoffDate:
    """Payoff point relative to the loan start (year 1, month 1 is the first instalment)."""
    year: int
    month: int

    @classmethod
    def from_month_number(cls, month_number: int) -> "PayoffDate":
        return cls(
            year=(month_number - 1) // MONTHS_PER_YEAR + 1,
            month=(month_number - 1) % MONTHS_PER_YEAR + 1,
        )

    @property
    def month_number(self) -> int:
        return (self.year - 1) * MONTHS_PER_YEAR + self.month

    def on_calendar(self, first_payment: date) -> date:
        """Calendar date of the final instalment given the first instalment date."""
        offset = self.month_number - 1
        month_index = first_payment.month - 1 + offset
        year = first_payment.year + month_index // MONTHS_PER_YEAR
        month = month_index % MONTHS_PER_YEAR + 1
        day = min(first_payment.day, calendar.monthrange(year, month)[1])
        return date(year, month, day)


@dataclass(frozen=True)
class ScheduleMetrics:
    total_interest: Money
    total_principal: Money
    total_extra_payments: Money
    total_payments: Money
    actual_term: MonthCount
    interest_saved_vs_original: Money
    term_reduction_months: int
    effective_interest_rate: Decimal  # percent; may exceed 100
    average_monthly_payment: Money
    largest_payment: Money
    smallest_payment: Money
    payoff_date: PayoffDate


@dataclass(frozen=True)
class AmortizationSchedule:
    configuration: LoanConfiguration
    plan: Optional[ExtraPaymentPlan]
    entries: tuple[AmortizationEntry, ...]
    metrics: ScheduleMetrics

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def final_entry(self) -> AmortizationEntry:
        return self.entries[-1]


@dataclass(frozen=True)
class ScheduleComparison:
    base: AmortizationSchedule
    other: AmortizationSchedule
    interest_savings: Money
    term_reduction_months: int
    total_extra_payments: Money
    return_on_investment: Decimal  # percent
    is_worthwhile: bool


@dataclass(frozen=True)
class YearlySummary:
    year: int
    principal: Money
    interest: Money
    extra_payments: Money
    total_paid: Money
    ending_balance: Money
    payment_count: int
