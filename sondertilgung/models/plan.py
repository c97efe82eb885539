"""Sondertilgung plans: scheduled extra principal payments.

The yearly limit on a plan is informational. Whether a bank accepts a given
payment is decided by the market-rules collaborator; this module only
aggregates per loan year so that such a check is a simple lookup.
"""

from collections import defaultdict
from dataclasses import dataclass
from functools import cached_property
from typing import Iterable, Optional

from sondertilgung.models.errors import CalculationError, ErrorKind, invalid
from sondertilgung.models.result import Err, Ok, Result
from sondertilgung.models.values import Money, Number, PaymentMonth, Percentage

MIN_EXTRA_PAYMENT = Money(100)  # 1.00 EUR
MAX_EXTRA_PAYMENT = Money(100_000_000)  # 1,000,000.00 EUR


@dataclass(frozen=True)
class ExtraPayment:
    month: PaymentMonth
    amount: Money

    @classmethod
    def create(cls, month: PaymentMonth, amount: Money) -> Result["ExtraPayment", CalculationError]:
        if amount < MIN_EXTRA_PAYMENT:
            return Err(invalid(
                ErrorKind.INVALID_AMOUNT,
                f"extra payment {amount} below minimum {MIN_EXTRA_PAYMENT}",
                "ExtraPayment.create",
                month=month.number,
                amount=amount.euros,
            ))
        if amount > MAX_EXTRA_PAYMENT:
            return Err(invalid(
                ErrorKind.PAYMENT_TOO_HIGH,
                f"extra payment {amount} above maximum {MAX_EXTRA_PAYMENT}",
                "ExtraPayment.create",
                month=month.number,
                amount=amount.euros,
            ))
        return Ok(cls(month, amount))

    @classmethod
    def of(cls, month: int, euros: Number) -> Result["ExtraPayment", CalculationError]:
        """Build from raw numbers: month index and EUR amount."""
        return PaymentMonth.of(month).and_then(
            lambda payment_month: Money.from_euros(euros).and_then(
                lambda amount: cls.create(payment_month, amount)
            )
        )


@dataclass(frozen=True)
class YearlyLimit:
    """Share of the original loan amount a borrower may repay extra per year.

    ``percentage`` of None means unlimited.
    """
    percentage: Optional[Percentage] = None

    @classmethod
    def of_percentage(cls, percentage: Percentage) -> "YearlyLimit":
        return cls(percentage)

    @classmethod
    def unlimited(cls) -> "YearlyLimit":
        return cls(None)

    @property
    def is_unlimited(self) -> bool:
        return self.percentage is None


@dataclass(frozen=True)
class YearlyExtraPaymentSummary:
    year: int
    total_amount: Money
    payment_count: int
    average_payment: Money


def merge_by_month(payments: Iterable[ExtraPayment]) -> Result[list[ExtraPayment], CalculationError]:
    """Combine payments falling in the same month into one, ordered by month."""
    totals: dict[PaymentMonth, Money] = {}
    for payment in payments:
        current = totals.get(payment.month)
        if current is None:
            totals[payment.month] = payment.amount
            continue
        combined = current.add(payment.amount)
        if combined.is_err():
            return combined.map_err(lambda e: e.within("merge_by_month", month=payment.month.number))
        totals[payment.month] = combined.value
    return Ok([ExtraPayment(month, amount) for month, amount in sorted(totals.items())])


@dataclass(frozen=True)
class ExtraPaymentPlan:
    yearly_limit: YearlyLimit
    payments: tuple[ExtraPayment, ...] = ()

    @classmethod
    def create(
        cls, yearly_limit: YearlyLimit, payments: Iterable[ExtraPayment] = ()
    ) -> Result["ExtraPaymentPlan", CalculationError]:
        ordered = sorted(payments, key=lambda p: p.month)
        seen: set[int] = set()
        for payment in ordered:
            if payment.month.number in seen:
                return Err(invalid(
                    ErrorKind.DUPLICATE_PAYMENT_MONTH,
                    f"more than one extra payment in month {payment.month.number}; merge them first",
                    "ExtraPaymentPlan.create",
                    month=payment.month.number,
                ))
            seen.add(payment.month.number)
        return Ok(cls(yearly_limit, tuple(ordered)))

    @property
    def is_empty(self) -> bool:
        return not self.payments

    @cached_property
    def by_month(self) -> dict[int, ExtraPayment]:
        return {payment.month.number: payment for payment in self.payments}

    def payment_for(self, month: int) -> Optional[ExtraPayment]:
        return self.by_month.get(month)

    def yearly_totals(self) -> dict[int, Money]:
        totals: dict[int, int] = defaultdict(int)
        for payment in self.payments:
            totals[payment.month.year] += payment.amount.cents
        return {year: Money(cents) for year, cents in sorted(totals.items())}

    def yearly_summaries(self) -> list[YearlyExtraPaymentSummary]:
        counts: dict[int, int] = defaultdict(int)
        for payment in self.payments:
            counts[payment.month.year] += 1

        summaries = []
        for year, total in self.yearly_totals().items():
            average = Money.from_euros(total.euros / counts[year]).unwrap()
            summaries.append(YearlyExtraPaymentSummary(year, total, counts[year], average))
        return summaries

    def max_yearly_amount(self, loan_amount: Money) -> Money:
        """Ceiling for one year's extra payments; the full loan when unlimited."""
        if self.yearly_limit.is_unlimited:
            return loan_amount
        return loan_amount.multiply(self.yearly_limit.percentage.fraction).unwrap()

    def remaining_allowance(self, year: int, loan_amount: Money) -> Optional[Money]:
        """What is still allowed in ``year``; None for unlimited plans."""
        if self.yearly_limit.is_unlimited:
            return None
        used = self.yearly_totals().get(year, Money.zero())
        remaining = self.max_yearly_amount(loan_amount).cents - used.cents
        return Money(max(0, remaining))

    def years_over_limit(self, loan_amount: Money) -> list[int]:
        if self.yearly_limit.is_unlimited:
            return []
        ceiling = self.max_yearly_amount(loan_amount)
        return [year for year, total in self.yearly_totals().items() if total > ceiling]
