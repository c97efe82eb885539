from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sondertilgung.models.errors import CalculationError, ErrorKind, invalid
from sondertilgung.models.result import Err, Ok, Result
from sondertilgung.models.values import InterestRate, Money, MonthCount
from sondertilgung.numeric import DEFAULT_POLICY, HUNDRED, NumericPolicy, annuity_payment


@dataclass(frozen=True)
class MonthlyPayment:
    """One instalment split into principal and interest; total == principal + interest."""
    principal: Money
    interest: Money
    total: Money

    @classmethod
    def from_money(cls, principal: Money, interest: Money) -> Result["MonthlyPayment", CalculationError]:
        return principal.add(interest).map(lambda total: cls(principal, interest, total))

    @classmethod
    def from_amounts(cls, principal: Decimal, interest: Decimal) -> Result["MonthlyPayment", CalculationError]:
        """Round the total and the interest to cents; principal is the remainder.

        The rounded total then matches the rounded instalment and the parts
        still add up exactly.
        """
        total_result = Money.from_euros(principal + interest)
        if total_result.is_err():
            return total_result.map_err(lambda e: e.within("MonthlyPayment.total", total=principal + interest))
        interest_result = Money.from_euros(interest)
        if interest_result.is_err():
            return interest_result.map_err(lambda e: e.within("MonthlyPayment.interest", interest=interest))
        principal_result = total_result.value.subtract(interest_result.value)
        if principal_result.is_err():
            return principal_result.map_err(lambda e: e.within("MonthlyPayment.principal", principal=principal))
        return Ok(cls(principal_result.value, interest_result.value, total_result.value))

    @property
    def principal_share(self) -> Decimal:
        """Principal as percent of the total (0 when nothing is paid)."""
        if self.total.is_zero():
            return Decimal("0")
        return Decimal(self.principal.cents) * HUNDRED / Decimal(self.total.cents)


@dataclass(frozen=True)
class LoanConfiguration:
    """Amount, nominal rate, term and instalment of an annuity loan.

    The four fields agree with the annuity formula; use ``create`` or
    ``from_terms`` rather than the bare constructor.
    """
    amount: Money
    annual_rate: InterestRate
    term: MonthCount
    monthly_payment: Money

    @classmethod
    def create(
        cls,
        amount: Money,
        annual_rate: InterestRate,
        term: MonthCount,
        monthly_payment: Money,
        policy: NumericPolicy = DEFAULT_POLICY,
    ) -> Result["LoanConfiguration", CalculationError]:
        if amount.is_zero():
            return Err(invalid(ErrorKind.INVALID_AMOUNT, "loan amount must be positive", "LoanConfiguration.create"))

        with policy.apply():
            try:
                expected = annuity_payment(amount.euros, annual_rate.monthly, term.months)
            except ArithmeticError:
                return Err(invalid(
                    ErrorKind.MATHEMATICAL_ERROR,
                    "annuity formula is degenerate",
                    "LoanConfiguration.create",
                    amount=amount.euros,
                    rate=annual_rate.percent,
                    term=term.months,
                ))
            # 0 % loans must match to the cent; otherwise allow rounding drift
            tolerance = policy.payment_tolerance if annual_rate.is_zero() else policy.consistency_tolerance
            deviation = abs(monthly_payment.euros - expected)

        if deviation > tolerance:
            return Err(invalid(
                ErrorKind.INCONSISTENT_PARAMETERS,
                f"payment {monthly_payment.euros} disagrees with annuity payment {expected:.2f}",
                "LoanConfiguration.create",
                payment=monthly_payment.euros,
                expected=expected,
                tolerance=tolerance,
            ))
        return Ok(cls(amount, annual_rate, term, monthly_payment))

    @classmethod
    def from_terms(
        cls,
        amount: Money,
        annual_rate: InterestRate,
        term: MonthCount,
        policy: NumericPolicy = DEFAULT_POLICY,
    ) -> Result["LoanConfiguration", CalculationError]:
        """Derive the instalment from amount, rate and term."""
        if amount.is_zero():
            return Err(invalid(ErrorKind.INVALID_AMOUNT, "loan amount must be positive", "LoanConfiguration.from_terms"))
        with policy.apply():
            try:
                payment = annuity_payment(amount.euros, annual_rate.monthly, term.months)
            except ArithmeticError:
                return Err(invalid(
                    ErrorKind.MATHEMATICAL_ERROR,
                    "annuity formula is degenerate",
                    "LoanConfiguration.from_terms",
                    amount=amount.euros,
                    rate=annual_rate.percent,
                    term=term.months,
                ))
        return Money.from_euros(payment).and_then(
            lambda money: cls.create(amount, annual_rate, term, money, policy)
        )

    def with_terms(
        self,
        amount: Optional[Money] = None,
        annual_rate: Optional[InterestRate] = None,
        term: Optional[MonthCount] = None,
        policy: NumericPolicy = DEFAULT_POLICY,
    ) -> Result["LoanConfiguration", CalculationError]:
        """Copy with some terms replaced and the instalment re-derived."""
        return LoanConfiguration.from_terms(
            amount if amount is not None else self.amount,
            annual_rate if annual_rate is not None else self.annual_rate,
            term if term is not None else self.term,
            policy,
        )

    def with_rate(
        self, annual_rate: InterestRate, policy: NumericPolicy = DEFAULT_POLICY
    ) -> Result["LoanConfiguration", CalculationError]:
        return self.with_terms(annual_rate=annual_rate, policy=policy)


@dataclass(frozen=True)
class ScenarioAdjustment:
    """A what-if tweak applied to a base loan."""
    amount_multiplier: Optional[Decimal] = None
    rate_adjustment: Optional[Decimal] = None  # percentage points
    term_adjustment: Optional[int] = None  # months
