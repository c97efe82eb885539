"""Loan algebra: relations between amount, rate, term and instalment.

Pure functions: validated values in, Result out. No I/O.
"""

import logging
from decimal import Decimal

from scipy.optimize import bisect

from sondertilgung.models.errors import CalculationError, ErrorKind, invalid
from sondertilgung.models.loan import LoanConfiguration, MonthlyPayment, ScenarioAdjustment
from sondertilgung.models.result import Err, Ok, Result
from sondertilgung.models.values import MAX_INTEREST_RATE, InterestRate, Money, MonthCount, Percentage
from sondertilgung.numeric import (
    DEFAULT_POLICY,
    FOUR_PLACES,
    HUNDRED,
    MONTHS_PER_YEAR,
    NumericPolicy,
    annuity_factor,
    annuity_payment,
    ceil_months,
    months_to_repay,
)

logger = logging.getLogger(__name__)


def _degenerate(operation: str, **context) -> Err:
    return Err(invalid(ErrorKind.MATHEMATICAL_ERROR, "annuity formula is degenerate", operation, **context))


def monthly_payment(
    config: LoanConfiguration, policy: NumericPolicy = DEFAULT_POLICY
) -> Result[MonthlyPayment, CalculationError]:
    """Level instalment of ``config`` split into the first month's principal and interest."""
    with policy.apply():
        monthly_rate = config.annual_rate.monthly
        try:
            payment = annuity_payment(config.amount.euros, monthly_rate, config.term.months)
        except ArithmeticError:
            return _degenerate("monthly_payment", amount=config.amount.euros, term=config.term.months)
        interest = config.amount.euros * monthly_rate
        principal = payment - interest

    return MonthlyPayment.from_amounts(principal, interest).map_err(
        lambda e: e.within("monthly_payment", payment=payment)
    )


def loan_term(
    amount: Money,
    annual_rate: InterestRate,
    payment: Money,
    policy: NumericPolicy = DEFAULT_POLICY,
) -> Result[MonthCount, CalculationError]:
    """Number of instalments needed to repay ``amount``, rounded up.

    ``payment`` is a cent-rounded instalment, so it is read as up to half a
    tolerance higher; otherwise an instalment rounded down needs n + epsilon
    months and the ceiling lands one month past its own term.
    """
    if payment.is_zero():
        return Err(invalid(ErrorKind.INSUFFICIENT_PAYMENT, "payment must be positive", "loan_term"))

    with policy.apply():
        monthly_rate = annual_rate.monthly
        first_interest = amount.euros * monthly_rate
        if monthly_rate != 0 and payment.euros <= first_interest:
            return Err(invalid(
                ErrorKind.INSUFFICIENT_PAYMENT,
                f"payment {payment} does not cover first month's interest {first_interest:.2f}",
                "loan_term",
                payment=payment.euros,
                interest=first_interest,
            ))
        exact_payment = payment.euros + policy.payment_tolerance / 2
        months = ceil_months(months_to_repay(amount.euros, monthly_rate, exact_payment))

    return MonthCount.of(months).map_err(
        lambda e: e.within("loan_term", amount=amount.euros, rate=annual_rate.percent, payment=payment.euros)
    )


def interest_rate(
    amount: Money,
    payment: Money,
    term: MonthCount,
    policy: NumericPolicy = DEFAULT_POLICY,
) -> Result[InterestRate, CalculationError]:
    """Annual rate at which ``payment`` repays ``amount`` in ``term``.

    No closed form exists, so the rate is found by bisection over
    [rate_search_lower, rate_search_upper]. The payment is monotonic in the
    rate, which guarantees convergence once the target is bracketed.
    """
    if amount.is_zero():
        return Err(invalid(ErrorKind.INVALID_AMOUNT, "loan amount must be positive", "interest_rate"))

    n = term.months
    with policy.apply():
        zero_rate_payment = amount.euros / n
        if abs(payment.euros - zero_rate_payment) < policy.payment_tolerance:
            return InterestRate.from_percent(Decimal("0"))
        if payment.euros < zero_rate_payment:
            return Err(invalid(
                ErrorKind.INSUFFICIENT_PAYMENT,
                f"payment {payment} repays less than the principal over {n} months",
                "interest_rate",
                payment=payment.euros,
                minimum=zero_rate_payment,
            ))

    principal = float(amount.euros)
    target = float(payment.euros)

    def payment_gap(rate: float) -> float:
        c = rate / MONTHS_PER_YEAR
        factor = (1 + c) ** n
        return principal * c * factor / (factor - 1) - target

    lower = float(policy.rate_search_lower)
    upper = float(policy.rate_search_upper)
    if payment_gap(lower) > 0 or payment_gap(upper) < 0:
        logger.warning("Rate search: payment %s outside feasible range for %s over %d months", payment, amount, n)
        return Err(invalid(
            ErrorKind.MATHEMATICAL_ERROR,
            f"payment {payment} is outside the range reachable between {lower:.2%} and {upper:.2%}",
            "interest_rate",
            payment=payment.euros,
            lower=policy.rate_search_lower,
            upper=policy.rate_search_upper,
        ))

    try:
        rate = bisect(payment_gap, lower, upper, xtol=1e-12, maxiter=policy.rate_search_max_iterations)
    except (ValueError, RuntimeError) as exc:
        logger.warning("Rate search did not converge: %s", exc)
        return Err(invalid(ErrorKind.MATHEMATICAL_ERROR, f"rate search failed: {exc}", "interest_rate"))

    with policy.apply():
        fraction = Decimal(str(rate))
        solved_payment = annuity_payment(amount.euros, fraction / MONTHS_PER_YEAR, n)
        if abs(solved_payment - payment.euros) > policy.payment_tolerance:
            return Err(invalid(
                ErrorKind.MATHEMATICAL_ERROR,
                "rate search converged outside payment tolerance",
                "interest_rate",
                rate=fraction,
                payment=payment.euros,
                solved_payment=solved_payment,
            ))
        percent = (fraction * HUNDRED).quantize(FOUR_PLACES)
        if percent > MAX_INTEREST_RATE:
            # a cent-rounded payment can solve slightly past the cap
            capped_payment = annuity_payment(amount.euros, MAX_INTEREST_RATE / HUNDRED / MONTHS_PER_YEAR, n)
            if abs(capped_payment - payment.euros) <= policy.payment_tolerance:
                percent = MAX_INTEREST_RATE

    logger.debug("Rate search: %s over %d months at %s -> %s%%", amount, n, payment, percent)
    return InterestRate.from_percent(percent).map_err(lambda e: e.within("interest_rate", rate=percent))


def total_interest(
    config: LoanConfiguration, policy: NumericPolicy = DEFAULT_POLICY
) -> Result[Money, CalculationError]:
    """Instalment x term - amount, never below zero.

    At near-zero rates the instalment can round down far enough that term
    instalments undercut the amount; that counts as no interest.
    """
    if config.annual_rate.is_zero():
        return Ok(Money.zero())

    def _total(payment: MonthlyPayment) -> Result[Money, CalculationError]:
        with policy.apply():
            interest = max(Decimal("0"), payment.total.euros * config.term.months - config.amount.euros)
        return Money.from_euros(interest).map_err(lambda e: e.within("total_interest", interest=interest))

    return monthly_payment(config, policy).and_then(_total)


def remaining_balance(
    config: LoanConfiguration,
    payments_made: int,
    policy: NumericPolicy = DEFAULT_POLICY,
) -> Result[Money, CalculationError]:
    """Outstanding principal after ``payments_made`` regular instalments.

    B(k) = L * (F(n) - F(k)) / (F(n) - 1) with F(x) = (1 + c)^x.
    """
    if payments_made < 0:
        return Err(invalid(
            ErrorKind.INVALID_PARAMETERS,
            f"payments made must not be negative, got {payments_made}",
            "remaining_balance",
        ))
    n = config.term.months
    if payments_made >= n:
        return Ok(Money.zero())

    with policy.apply():
        amount = config.amount.euros
        monthly_rate = config.annual_rate.monthly
        if monthly_rate == 0:
            balance = amount - amount / n * payments_made
        else:
            full = annuity_factor(monthly_rate, n)
            balance = amount * (full - annuity_factor(monthly_rate, payments_made)) / (full - 1)
        balance = max(Decimal("0"), balance)

    return Money.from_euros(balance).map_err(
        lambda e: e.within("remaining_balance", payments_made=payments_made)
    )


def break_even_point(
    current: LoanConfiguration,
    new: LoanConfiguration,
    cost: Money,
    policy: NumericPolicy = DEFAULT_POLICY,
) -> Result[MonthCount, CalculationError]:
    """Months until the lower instalment of ``new`` has paid back ``cost``."""
    current_result = monthly_payment(current, policy)
    if current_result.is_err():
        return current_result
    new_result = monthly_payment(new, policy)
    if new_result.is_err():
        return new_result

    current_total = current_result.value.total
    new_total = new_result.value.total
    if current_total <= new_total:
        return Err(invalid(
            ErrorKind.INSUFFICIENT_PAYMENT,
            f"new payment {new_total} is not lower than current payment {current_total}",
            "break_even_point",
            current=current_total.euros,
            new=new_total.euros,
        ))

    with policy.apply():
        savings = current_total.euros - new_total.euros
        months = ceil_months(cost.euros / savings)

    result = MonthCount.of(months)
    if result.is_err():
        return Err(CalculationError(
            kind=ErrorKind.INVALID_PARAMETERS,
            message=f"break-even horizon of {months} months is not a valid term",
            operation="break_even_point",
            context={"cost": cost.euros, "monthly_savings": savings},
            cause=result.error,
        ))
    return result


def _adjusted_configuration(
    base: LoanConfiguration, adjustment: ScenarioAdjustment, policy: NumericPolicy
) -> Result[LoanConfiguration, CalculationError]:
    amount = Ok(base.amount)
    if adjustment.amount_multiplier is not None:
        amount = base.amount.multiply(adjustment.amount_multiplier)
    rate = Ok(base.annual_rate)
    if adjustment.rate_adjustment is not None:
        rate = base.annual_rate.add_points(adjustment.rate_adjustment)
    term = Ok(base.term)
    if adjustment.term_adjustment is not None:
        term = MonthCount.of(base.term.months + adjustment.term_adjustment)

    for part in (amount, rate, term):
        if part.is_err():
            return part
    return LoanConfiguration.from_terms(amount.value, rate.value, term.value, policy)


def payment_scenarios(
    base: LoanConfiguration,
    adjustments: list[ScenarioAdjustment],
    policy: NumericPolicy = DEFAULT_POLICY,
) -> Result[list[MonthlyPayment], CalculationError]:
    """What-if instalments; one invalid adjustment fails the whole batch."""
    logger.debug("Evaluating %d payment scenarios", len(adjustments))
    payments: list[MonthlyPayment] = []
    for index, adjustment in enumerate(adjustments):
        configured = _adjusted_configuration(base, adjustment, policy)
        if configured.is_err():
            return Err(CalculationError(
                kind=ErrorKind.INVALID_PARAMETERS,
                message=f"scenario {index} produces an invalid loan",
                operation="payment_scenarios",
                context={"scenario": index},
                cause=configured.error,
            ))
        payment = monthly_payment(configured.value, policy)
        if payment.is_err():
            return payment
        payments.append(payment.value)
    return Ok(payments)


def payment_from_initial_repayment(
    amount: Money,
    annual_rate: InterestRate,
    initial_repayment: Percentage,
    policy: NumericPolicy = DEFAULT_POLICY,
) -> Result[Money, CalculationError]:
    """Instalment from the German "anfängliche Tilgung".

    payment = L * (nominal rate + initial repayment rate) / 12
    """
    if initial_repayment.value == 0:
        return Err(invalid(
            ErrorKind.INSUFFICIENT_PAYMENT,
            "an initial repayment of 0 % never amortizes the loan",
            "payment_from_initial_repayment",
        ))
    with policy.apply():
        payment = amount.euros * (annual_rate.fraction + initial_repayment.fraction) / MONTHS_PER_YEAR
    return Money.from_euros(payment).map_err(
        lambda e: e.within("payment_from_initial_repayment", payment=payment)
    )


def initial_repayment_rate(
    config: LoanConfiguration, policy: NumericPolicy = DEFAULT_POLICY
) -> Result[Percentage, CalculationError]:
    """Share of the amount repaid in the first year implied by the instalment."""
    with policy.apply():
        fraction = config.monthly_payment.euros * MONTHS_PER_YEAR / config.amount.euros - config.annual_rate.fraction
        fraction = fraction.quantize(Decimal("0.000001"))
    return Percentage.from_fraction(fraction).map_err(
        lambda e: e.within("initial_repayment_rate", fraction=fraction)
    )
