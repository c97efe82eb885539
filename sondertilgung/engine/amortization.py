"""Amortization schedule simulation with Sondertilgung.

Pure functions: configuration and plan in, immutable schedule out. No I/O.

The contractual instalment is fixed once from the configuration and never
re-amortized; extra payments only move the payoff date forward.
"""

import logging
from decimal import Decimal
from typing import Optional, Sequence

from sondertilgung.engine.loan_math import total_interest
from sondertilgung.models.errors import CalculationError, ErrorKind, SimulationError, invalid
from sondertilgung.models.loan import LoanConfiguration, MonthlyPayment
from sondertilgung.models.plan import ExtraPayment, ExtraPaymentPlan
from sondertilgung.models.result import Err, Ok, Result, collect
from sondertilgung.models.schedule import (
    AmortizationEntry,
    AmortizationSchedule,
    PayoffDate,
    ScheduleComparison,
    ScheduleMetrics,
    YearlySummary,
)
from sondertilgung.models.values import Money, MonthCount, PaymentMonth, Percentage
from sondertilgung.numeric import (
    DEFAULT_POLICY,
    FOUR_PLACES,
    HUNDRED,
    MONTHS_PER_YEAR,
    TWO_PLACES,
    NumericPolicy,
    annuity_payment,
    ceil_months,
    months_to_repay,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
WORTHWHILE_RETURN = Decimal("2")  # percent


def _at_month(error: CalculationError, month: int, balance: Decimal) -> SimulationError:
    return SimulationError(
        kind=error.kind,
        message=error.message,
        operation="generate_schedule",
        context={"month": month, "balance": balance},
        cause=error,
        month=month,
        balance=balance,
    )


def _build_entry(
    month: int,
    starting_balance: Decimal,
    interest: Decimal,
    regular_principal: Decimal,
    scheduled: Optional[ExtraPayment],
    applied_extra: Decimal,
    ending_balance: Decimal,
    cumulative_interest: Decimal,
    cumulative_principal: Decimal,
    remaining_months: int,
) -> Result[AmortizationEntry, CalculationError]:
    payment_month = PaymentMonth.of(month)
    if payment_month.is_err():
        return payment_month
    regular = MonthlyPayment.from_amounts(regular_principal, interest)
    if regular.is_err():
        return regular

    amounts = collect(
        Money.from_euros(value)
        for value in (starting_balance, applied_extra, ending_balance, cumulative_interest, cumulative_principal)
    )
    if amounts.is_err():
        return amounts
    starting, extra, ending, interest_so_far, principal_so_far = amounts.value

    total = regular.value.total.add(extra)
    if total.is_err():
        return total

    if total.value.is_zero():
        share = HUNDRED
    else:
        principal_cents = regular.value.principal.cents + extra.cents
        share = (Decimal(principal_cents) * HUNDRED / Decimal(total.value.cents)).quantize(TWO_PLACES)
    percentage = Percentage.from_value(min(HUNDRED, max(ZERO, share)))
    if percentage.is_err():
        return percentage

    return Ok(AmortizationEntry(
        month=payment_month.value,
        starting_balance=starting,
        regular_payment=regular.value,
        extra_payment=scheduled if not extra.is_zero() else None,
        applied_extra=extra,
        total_payment_amount=total.value,
        ending_balance=ending,
        cumulative_interest=interest_so_far,
        cumulative_principal=principal_so_far,
        principal_percentage=percentage.value,
        remaining_months=remaining_months,
    ))


def generate_schedule(
    config: LoanConfiguration,
    plan: Optional[ExtraPaymentPlan] = None,
    policy: NumericPolicy = DEFAULT_POLICY,
) -> Result[AmortizationSchedule, CalculationError]:
    """Simulate ``config`` month by month until the balance is repaid.

    Each month pays interest on the running balance, then regular principal,
    then the plan's extra payment for that month capped at what is still
    owed. Stops once the balance is at most one cent, or fails with
    SimulationLimitExceeded after ``safety_term_multiplier`` x term months.
    """
    ceiling = config.term.months * policy.safety_term_multiplier
    entries: list[AmortizationEntry] = []

    with policy.apply():
        monthly_rate = config.annual_rate.monthly
        try:
            payment = annuity_payment(config.amount.euros, monthly_rate, config.term.months)
        except ArithmeticError:
            return Err(invalid(
                ErrorKind.MATHEMATICAL_ERROR,
                "annuity formula is degenerate",
                "generate_schedule",
                amount=config.amount.euros,
                term=config.term.months,
            ))

        balance = config.amount.euros
        cumulative_interest = ZERO
        cumulative_principal = ZERO
        month = 1

        while balance > policy.payment_tolerance:
            if month > ceiling:
                logger.warning(
                    "Simulation hit safety ceiling of %d months with %.2f EUR outstanding", ceiling, balance
                )
                return Err(SimulationError(
                    kind=ErrorKind.SIMULATION_LIMIT_EXCEEDED,
                    message=f"loan not repaid within {ceiling} months",
                    operation="generate_schedule",
                    context={"ceiling": ceiling, "term": config.term.months, "payment": payment},
                    month=month - 1,
                    balance=balance,
                ))

            interest = balance * monthly_rate
            regular_principal = min(max(payment - interest, ZERO), balance)
            scheduled = plan.payment_for(month) if plan is not None else None
            applied_extra = ZERO
            if scheduled is not None:
                applied_extra = min(scheduled.amount.euros, balance - regular_principal)
            ending = max(ZERO, balance - regular_principal - applied_extra)

            cumulative_interest += interest
            cumulative_principal += regular_principal + applied_extra

            if ending <= policy.payment_tolerance:
                remaining = 0
            elif payment > ending * monthly_rate:
                remaining = ceil_months(months_to_repay(ending, monthly_rate, payment))
            else:
                remaining = max(0, config.term.months - month)

            entry = _build_entry(
                month,
                balance,
                interest,
                regular_principal,
                scheduled,
                applied_extra,
                ending,
                cumulative_interest,
                cumulative_principal,
                remaining,
            )
            if entry.is_err():
                return Err(_at_month(entry.error, month, balance))
            entries.append(entry.value)

            balance = ending
            month += 1

    metrics = calculate_schedule_metrics(config, entries, policy)
    if metrics.is_err():
        return metrics

    logger.debug(
        "Generated schedule: %s over %d months (%d planned extra payments) -> %d entries",
        config.amount,
        config.term.months,
        len(plan.payments) if plan is not None else 0,
        len(entries),
    )
    return Ok(AmortizationSchedule(
        configuration=config,
        plan=plan,
        entries=tuple(entries),
        metrics=metrics.value,
    ))


def calculate_schedule_metrics(
    config: LoanConfiguration,
    entries: Sequence[AmortizationEntry],
    policy: NumericPolicy = DEFAULT_POLICY,
) -> Result[ScheduleMetrics, CalculationError]:
    """Reduce completed entries into totals, payment statistics and savings vs. the plain loan."""
    if not entries:
        return Err(invalid(ErrorKind.SCHEDULE_ANALYSIS_ERROR, "schedule has no entries", "calculate_schedule_metrics"))

    last = entries[-1]
    paid_interest = last.cumulative_interest
    paid_principal = last.cumulative_principal
    extra_cents = sum(entry.applied_extra.cents for entry in entries)
    payment_cents = [entry.total_payment_amount.cents for entry in entries]

    actual_term = MonthCount.of(len(entries))
    if actual_term.is_err():
        return actual_term.map_err(lambda e: e.within("calculate_schedule_metrics", entries=len(entries)))

    original_interest = total_interest(config, policy)
    if original_interest.is_err():
        return original_interest.map_err(lambda e: e.within("calculate_schedule_metrics"))
    saved_cents = max(0, original_interest.value.cents - paid_interest.cents)

    with policy.apply():
        if extra_cents > 0:
            effective_rate = (Decimal(saved_cents) * HUNDRED / Decimal(extra_cents)).quantize(FOUR_PLACES)
        else:
            effective_rate = config.annual_rate.percent
        total_cents = paid_interest.cents + paid_principal.cents
        average = (Decimal(total_cents) / len(entries) / HUNDRED)

    totals = collect([
        Money.from_cents(extra_cents),
        Money.from_cents(total_cents),
        Money.from_cents(saved_cents),
        Money.from_euros(average),
    ])
    if totals.is_err():
        return totals.map_err(lambda e: e.within("calculate_schedule_metrics"))
    extra, overall, saved, average_payment = totals.value

    return Ok(ScheduleMetrics(
        total_interest=paid_interest,
        total_principal=paid_principal,
        total_extra_payments=extra,
        total_payments=overall,
        actual_term=actual_term.value,
        interest_saved_vs_original=saved,
        term_reduction_months=max(0, config.term.months - len(entries)),
        effective_interest_rate=effective_rate,
        average_monthly_payment=average_payment,
        largest_payment=Money(max(payment_cents)),
        smallest_payment=Money(min(payment_cents)),
        payoff_date=PayoffDate.from_month_number(len(entries)),
    ))


def apply_extra_payments(
    schedule: AmortizationSchedule,
    plan: ExtraPaymentPlan,
    policy: NumericPolicy = DEFAULT_POLICY,
) -> Result[AmortizationSchedule, CalculationError]:
    """New schedule for the same loan with ``plan``; ``schedule`` is left untouched."""
    return generate_schedule(schedule.configuration, plan, policy).map_err(
        lambda e: e.within("apply_extra_payments")
    )


def compare_schedules(base: AmortizationSchedule, other: AmortizationSchedule) -> ScheduleComparison:
    """How much ``other`` saves relative to ``base``.

    The return on investment is interest saved per 100 EUR of extra payment;
    a comparison is worthwhile above a 2 % return.
    """
    savings_cents = base.metrics.total_interest.cents - other.metrics.total_interest.cents
    extra = other.metrics.total_extra_payments
    if extra.is_zero():
        roi = ZERO
    else:
        roi = (Decimal(savings_cents) * HUNDRED / Decimal(extra.cents)).quantize(FOUR_PLACES)

    return ScheduleComparison(
        base=base,
        other=other,
        interest_savings=Money(max(0, savings_cents)),
        term_reduction_months=max(0, len(base) - len(other)),
        total_extra_payments=extra,
        return_on_investment=roi,
        is_worthwhile=savings_cents > 0 and roi > WORTHWHILE_RETURN,
    )


def get_schedule_entry(schedule: AmortizationSchedule, month: PaymentMonth) -> Optional[AmortizationEntry]:
    index = month.number - 1
    if index < len(schedule.entries):
        return schedule.entries[index]
    return None


def get_remaining_balance(
    schedule: AmortizationSchedule, month: PaymentMonth
) -> Result[Money, CalculationError]:
    """Balance at the end of ``month``."""
    entry = get_schedule_entry(schedule, month)
    if entry is None:
        return Err(invalid(
            ErrorKind.SCHEDULE_ANALYSIS_ERROR,
            f"no entry for month {month.number}; schedule ends after {len(schedule)} months",
            "get_remaining_balance",
            month=month.number,
            entries=len(schedule),
        ))
    return Ok(entry.ending_balance)


def yearly_summary(schedule: AmortizationSchedule) -> list[YearlySummary]:
    """Aggregate a schedule by loan year.

    The last year may be partial when the loan is repaid mid-year.
    """
    yearly: list[YearlySummary] = []
    principal = interest = extra = paid = 0
    count = 0

    for entry in schedule.entries:
        principal += entry.regular_payment.principal.cents + entry.applied_extra.cents
        interest += entry.regular_payment.interest.cents
        extra += entry.applied_extra.cents
        paid += entry.total_payment_amount.cents
        count += 1

        if entry.month.number % MONTHS_PER_YEAR == 0 or entry is schedule.final_entry:
            yearly.append(YearlySummary(
                year=entry.month.year,
                principal=Money(principal),
                interest=Money(interest),
                extra_payments=Money(extra),
                total_paid=Money(paid),
                ending_balance=entry.ending_balance,
                payment_count=count,
            ))
            principal = interest = extra = paid = 0
            count = 0

    return yearly


def first_year_summary(schedule: AmortizationSchedule) -> YearlySummary:
    return yearly_summary(schedule)[0]
