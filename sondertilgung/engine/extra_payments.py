"""Sondertilgung analytics: impact, heuristics, strategy ranking, sensitivity.

Pure functions built on the loan algebra and the amortization engine. No I/O.
"""

import logging
from decimal import Decimal

from sondertilgung.engine.amortization import compare_schedules, generate_schedule
from sondertilgung.engine.irr import annualize, compute_irr
from sondertilgung.engine.loan_math import remaining_balance, total_interest
from sondertilgung.models.analytics import (
    ExtraPaymentReturn,
    InterestSensitivity,
    SondertilgungImpact,
    StrategyResult,
)
from sondertilgung.models.errors import CalculationError, ErrorKind, invalid
from sondertilgung.models.loan import LoanConfiguration
from sondertilgung.models.plan import ExtraPayment, ExtraPaymentPlan, YearlyLimit
from sondertilgung.models.result import Err, Ok, Result
from sondertilgung.models.values import InterestRate, MAX_INTEREST_RATE, Money, MonthCount, PaymentMonth
from sondertilgung.numeric import DEFAULT_POLICY, FOUR_PLACES, HUNDRED, NumericPolicy

logger = logging.getLogger(__name__)

SENSITIVITY_STEP = Decimal("1")  # percentage points


def sondertilgung_impact(
    config: LoanConfiguration,
    plan: ExtraPaymentPlan,
    policy: NumericPolicy = DEFAULT_POLICY,
) -> Result[SondertilgungImpact, CalculationError]:
    """Interest and term saved by ``plan`` compared with the plain annuity loan."""
    original_interest = total_interest(config, policy)
    if original_interest.is_err():
        return original_interest
    schedule = generate_schedule(config, plan, policy)
    if schedule.is_err():
        return schedule.map_err(lambda e: e.within("sondertilgung_impact"))

    metrics = schedule.value.metrics
    saved = metrics.interest_saved_vs_original
    extra = metrics.total_extra_payments
    if extra.is_zero():
        effective_rate = Decimal("0")
    else:
        effective_rate = (Decimal(saved.cents) * HUNDRED / Decimal(extra.cents)).quantize(FOUR_PLACES)

    return Ok(SondertilgungImpact(
        original_total_interest=original_interest.value,
        new_total_interest=metrics.total_interest,
        interest_saved=saved,
        original_term=config.term,
        new_term=metrics.actual_term,
        term_reduction_months=metrics.term_reduction_months,
        total_extra_payments=extra,
        effective_interest_rate=effective_rate,
    ))


def optimal_extra_payment(
    config: LoanConfiguration,
    month: PaymentMonth,
    max_amount: Money,
    policy: NumericPolicy = DEFAULT_POLICY,
) -> Result[Money, CalculationError]:
    """Largest extra payment allowed in ``month``: min(max_amount, balance owed).

    A cap-at-maximum heuristic, not an optimizer. Paying as much as allowed
    always maximizes savings on a fixed-rate annuity loan without fees.
    """
    balance = remaining_balance(config, month.number - 1, policy)
    if balance.is_err():
        return balance.map_err(lambda e: e.within("optimal_extra_payment", month=month.number))
    return Ok(min(max_amount, balance.value))


def compare_strategies(
    config: LoanConfiguration,
    plans: list[ExtraPaymentPlan],
    policy: NumericPolicy = DEFAULT_POLICY,
) -> Result[list[StrategyResult], CalculationError]:
    """Impact of each plan, best interest saving first.

    Plans with equal savings keep their input order.
    """
    logger.debug("Comparing %d Sondertilgung strategies", len(plans))
    results: list[StrategyResult] = []
    for index, plan in enumerate(plans):
        impact = sondertilgung_impact(config, plan, policy)
        if impact.is_err():
            return impact.map_err(lambda e: e.within("compare_strategies", strategy=index))
        results.append(StrategyResult(plan, impact.value))
    results.sort(key=lambda r: r.impact.interest_saved.cents, reverse=True)
    return Ok(results)


def _savings_at(
    config: LoanConfiguration,
    rate: InterestRate,
    plan: ExtraPaymentPlan,
    policy: NumericPolicy,
) -> Result[Money, CalculationError]:
    return (
        config.with_rate(rate, policy)
        .and_then(lambda shifted: sondertilgung_impact(shifted, plan, policy))
        .map(lambda impact: impact.interest_saved)
    )


def interest_sensitivity(
    config: LoanConfiguration,
    amount: Money,
    month: PaymentMonth,
    policy: NumericPolicy = DEFAULT_POLICY,
) -> Result[InterestSensitivity, CalculationError]:
    """Savings of a single extra payment at the loan rate and at +/- 1 percentage point.

    ``sensitivity`` is the percent change in savings per percentage point of
    rate; the lower rate is floored at 0 % and the upper capped at 25 %.
    """
    payment = ExtraPayment.create(month, amount)
    if payment.is_err():
        return payment.map_err(lambda e: e.within("interest_sensitivity"))
    plan = ExtraPaymentPlan(YearlyLimit.unlimited(), (payment.value,))

    base_rate = config.annual_rate
    low_rate = InterestRate(max(Decimal("0"), base_rate.percent - SENSITIVITY_STEP))
    high_rate = InterestRate(min(MAX_INTEREST_RATE, base_rate.percent + SENSITIVITY_STEP))

    savings = []
    for rate in (base_rate, low_rate, high_rate):
        result = _savings_at(config, rate, plan, policy)
        if result.is_err():
            return result.map_err(lambda e: e.within("interest_sensitivity", rate=rate.percent))
        savings.append(result.value)
    base, low, high = savings

    if base.is_zero():
        sensitivity = Decimal("0")
    else:
        with policy.apply():
            sensitivity = (
                Decimal(high.cents - low.cents) / (2 * Decimal(base.cents)) * HUNDRED
            ).quantize(FOUR_PLACES)

    return Ok(InterestSensitivity(
        base_rate=base_rate,
        low_rate=low_rate,
        high_rate=high_rate,
        base_savings=base,
        low_rate_savings=low,
        high_rate_savings=high,
        sensitivity=sensitivity,
    ))


def payoff_month(
    config: LoanConfiguration,
    plan: ExtraPaymentPlan,
    policy: NumericPolicy = DEFAULT_POLICY,
) -> Result[MonthCount, CalculationError]:
    """Number of instalments until the loan is repaid under ``plan``."""
    return generate_schedule(config, plan, policy).map(lambda schedule: schedule.metrics.actual_term)


def extra_payment_return(
    config: LoanConfiguration,
    plan: ExtraPaymentPlan,
    policy: NumericPolicy = DEFAULT_POLICY,
) -> Result[ExtraPaymentReturn, CalculationError]:
    """Annualized return earned by the extra payments of ``plan``.

    Cash flows are what the borrower pays without the plan minus what they pay
    with it, month by month: negative while extra payments go out, positive
    once the shortened loan stops charging instalments.
    """
    if plan.is_empty:
        return Err(invalid(ErrorKind.INVALID_PARAMETERS, "plan has no extra payments", "extra_payment_return"))

    baseline = generate_schedule(config, None, policy)
    if baseline.is_err():
        return baseline
    planned = generate_schedule(config, plan, policy)
    if planned.is_err():
        return planned

    base_entries = baseline.value.entries
    plan_entries = planned.value.entries
    cash_flows = [Decimal("0")]
    for index in range(max(len(base_entries), len(plan_entries))):
        without = base_entries[index].total_payment_amount.cents if index < len(base_entries) else 0
        with_plan = plan_entries[index].total_payment_amount.cents if index < len(plan_entries) else 0
        cash_flows.append(Decimal(without - with_plan) / HUNDRED)

    monthly = compute_irr(cash_flows)
    if monthly.is_err():
        return monthly.map_err(lambda e: e.within("extra_payment_return"))
    nominal, effective = annualize(monthly.value)

    comparison = compare_schedules(baseline.value, planned.value)
    logger.debug("Extra payment return: %s invested, %s%% nominal", comparison.total_extra_payments, nominal * 100)
    return Ok(ExtraPaymentReturn(
        monthly_rate=monthly.value,
        annual_rate=nominal,
        effective_annual_rate=effective,
        invested=comparison.total_extra_payments,
        interest_saved=comparison.interest_savings,
    ))
