"""Pydantic schemas for the engine's input and output boundary.

Pydantic checks shape; domain rules live in the value types, so
``to_configuration`` and ``to_plan`` return a Result rather than raising.
"""

from decimal import Decimal

from pydantic import BaseModel, Field

from sondertilgung.models.errors import CalculationError
from sondertilgung.models.loan import LoanConfiguration
from sondertilgung.models.plan import ExtraPayment, ExtraPaymentPlan, YearlyLimit
from sondertilgung.models.result import Err, Result, collect
from sondertilgung.models.schedule import AmortizationSchedule
from sondertilgung.models.values import InterestRate, Money, MonthCount, Percentage
from sondertilgung.numeric import DEFAULT_POLICY, NumericPolicy


# ---- Request schemas ----

class ExtraPaymentRequest(BaseModel):
    month: int = Field(..., ge=1, description="1-indexed instalment the payment is made with")
    amount: Decimal = Field(..., gt=0, description="EUR")

    def to_extra_payment(self) -> Result[ExtraPayment, CalculationError]:
        return ExtraPayment.of(self.month, self.amount)


class LoanRequest(BaseModel):
    amount: Decimal = Field(..., description="Loan amount in EUR")
    annual_rate: Decimal = Field(..., description="Nominal rate in percent, 3.5 for 3.5 %")
    term_months: int | None = None
    term_years: int | None = None
    monthly_payment: Decimal | None = Field(None, description="Derived from the annuity formula when omitted")

    # Sondertilgung
    extra_payments: list[ExtraPaymentRequest] = Field(default_factory=list)
    yearly_limit_percent: Decimal | None = Field(None, description="None means unlimited")

    def _term(self) -> Result[MonthCount, CalculationError]:
        if self.term_months is not None:
            return MonthCount.of(self.term_months)
        if self.term_years is not None:
            return MonthCount.from_years(self.term_years)
        return MonthCount.of(0)

    def to_configuration(self, policy: NumericPolicy = DEFAULT_POLICY) -> Result[LoanConfiguration, CalculationError]:
        parts = collect([Money.from_euros(self.amount), InterestRate.from_percent(self.annual_rate), self._term()])
        if parts.is_err():
            return parts.map_err(lambda e: e.within("LoanRequest.to_configuration"))
        amount, rate, term = parts.value

        if self.monthly_payment is None:
            return LoanConfiguration.from_terms(amount, rate, term, policy)
        return Money.from_euros(self.monthly_payment).and_then(
            lambda payment: LoanConfiguration.create(amount, rate, term, payment, policy)
        )

    def to_plan(self) -> Result[ExtraPaymentPlan, CalculationError]:
        limit = YearlyLimit.unlimited()
        if self.yearly_limit_percent is not None:
            percentage = Percentage.from_value(self.yearly_limit_percent)
            if percentage.is_err():
                return percentage.map_err(lambda e: e.within("LoanRequest.to_plan"))
            limit = YearlyLimit.of_percentage(percentage.value)

        payments = collect(p.to_extra_payment() for p in self.extra_payments)
        if payments.is_err():
            return Err(payments.error.within("LoanRequest.to_plan"))
        return ExtraPaymentPlan.create(limit, payments.value)


# ---- Response schemas ----

class AmortizationEntryResponse(BaseModel):
    month: int
    starting_balance: Decimal
    principal: Decimal
    interest: Decimal
    extra_payment: Decimal
    total_payment: Decimal
    ending_balance: Decimal
    cumulative_interest: Decimal
    cumulative_principal: Decimal
    principal_percentage: Decimal
    remaining_months: int


class ScheduleMetricsResponse(BaseModel):
    total_interest: Decimal
    total_principal: Decimal
    total_extra_payments: Decimal
    total_payments: Decimal
    actual_term_months: int
    interest_saved: Decimal
    term_reduction_months: int
    effective_interest_rate: Decimal
    average_monthly_payment: Decimal
    payoff_year: int
    payoff_month: int


class ScheduleResponse(BaseModel):
    monthly_payment: Decimal
    entries: list[AmortizationEntryResponse]
    metrics: ScheduleMetricsResponse

    @classmethod
    def from_schedule(cls, schedule: AmortizationSchedule) -> "ScheduleResponse":
        m = schedule.metrics
        return cls(
            monthly_payment=schedule.configuration.monthly_payment.euros,
            entries=[
                AmortizationEntryResponse(
                    month=e.month.number,
                    starting_balance=e.starting_balance.euros,
                    principal=e.regular_payment.principal.euros,
                    interest=e.regular_payment.interest.euros,
                    extra_payment=e.applied_extra.euros,
                    total_payment=e.total_payment_amount.euros,
                    ending_balance=e.ending_balance.euros,
                    cumulative_interest=e.cumulative_interest.euros,
                    cumulative_principal=e.cumulative_principal.euros,
                    principal_percentage=e.principal_percentage.value,
                    remaining_months=e.remaining_months,
                )
                for e in schedule.entries
            ],
            metrics=ScheduleMetricsResponse(
                total_interest=m.total_interest.euros,
                total_principal=m.total_principal.euros,
                total_extra_payments=m.total_extra_payments.euros,
                total_payments=m.total_payments.euros,
                actual_term_months=m.actual_term.months,
                interest_saved=m.interest_saved_vs_original.euros,
                term_reduction_months=m.term_reduction_months,
                effective_interest_rate=m.effective_interest_rate,
                average_monthly_payment=m.average_monthly_payment.euros,
                payoff_year=m.payoff_date.year,
                payoff_month=m.payoff_date.month,
            ),
        )
