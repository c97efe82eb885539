from datetime import date
from decimal import Decimal

from sondertilgung.engine.amortization import (
    apply_extra_payments,
    calculate_schedule_metrics,
    compare_schedules,
    first_year_summary,
    generate_schedule,
    get_remaining_balance,
    get_schedule_entry,
    yearly_summary,
)
from sondertilgung.engine.loan_math import remaining_balance
from sondertilgung.models.errors import ErrorKind, SimulationError
from sondertilgung.models.schedule import PayoffDate
from sondertilgung.models.values import Money, PaymentMonth
from sondertilgung.numeric import NumericPolicy


def _month(number: int) -> PaymentMonth:
    return PaymentMonth.of(number).unwrap()


def _close(money: Money, euros: str, cents: int = 1) -> bool:
    return abs(money.cents - Money.from_euros(euros).unwrap().cents) <= cents


class TestScheduleWithoutExtraPayments:
    def test_length_equals_term(self, standard_loan, interest_free_loan, small_loan):
        for config in (standard_loan, interest_free_loan, small_loan):
            schedule = generate_schedule(config).unwrap()
            assert len(schedule) == config.term.months

    def test_final_balance_repaid(self, standard_loan):
        schedule = generate_schedule(standard_loan).unwrap()
        assert schedule.final_entry.ending_balance.cents < 1

    def test_cumulative_principal_equals_amount(self, standard_loan, small_loan):
        for config in (standard_loan, small_loan):
            schedule = generate_schedule(config).unwrap()
            assert schedule.final_entry.cumulative_principal == config.amount

    def test_balances_never_increase(self, small_loan):
        entries = generate_schedule(small_loan).unwrap().entries
        for previous, current in zip(entries, entries[1:]):
            assert current.ending_balance <= previous.ending_balance
            assert current.starting_balance == previous.ending_balance

    def test_zero_rate_never_charges_interest(self, interest_free_loan):
        schedule = generate_schedule(interest_free_loan).unwrap()
        assert all(e.regular_payment.interest.is_zero() for e in schedule.entries)
        assert all(e.total_payment_amount == Money.from_euros("1000").unwrap() for e in schedule.entries)
        assert schedule.metrics.total_interest == Money.zero()

    def test_first_entry(self, standard_loan):
        first = generate_schedule(standard_loan).unwrap().entries[0]
        assert first.month.number == 1
        assert first.starting_balance == standard_loan.amount
        assert first.regular_payment.interest == Money.from_euros("466.67").unwrap()
        assert first.regular_payment.principal == Money.from_euros("975.09").unwrap()
        assert first.extra_payment is None
        assert first.principal_percentage.value == Decimal("67.63")
        assert first.remaining_months == 83

    def test_last_entry_has_no_remaining_months(self, standard_loan):
        assert generate_schedule(standard_loan).unwrap().final_entry.remaining_months == 0

    def test_matches_closed_form_balance(self, standard_loan):
        schedule = generate_schedule(standard_loan).unwrap()
        for month in (1, 12, 42, 83):
            simulated = schedule.entries[month - 1].ending_balance
            closed_form = remaining_balance(standard_loan, month).unwrap()
            assert abs(simulated.cents - closed_form.cents) <= 1

    def test_metrics(self, standard_loan):
        metrics = generate_schedule(standard_loan).unwrap().metrics
        assert metrics.actual_term.months == 84
        assert metrics.term_reduction_months == 0
        assert metrics.total_extra_payments == Money.zero()
        assert metrics.effective_interest_rate == standard_loan.annual_rate.percent
        assert metrics.interest_saved_vs_original.cents <= 84
        assert metrics.payoff_date == PayoffDate(7, 12)
        assert metrics.total_payments.cents == metrics.total_interest.cents + metrics.total_principal.cents

    def test_near_zero_rate_loans(self, make_loan):
        for config in (make_loan("1000", "0.001", 480), make_loan("1", "5", 480)):
            schedule = generate_schedule(config).unwrap()
            assert schedule.final_entry.ending_balance.cents <= 1
            assert schedule.metrics.interest_saved_vs_original == Money.zero()


class TestScheduleWithExtraPayments:
    def test_two_extra_payments(self, sondertilgung_loan, two_extra_payments):
        """50K at 2% over 60 months with 5K in months 12 and 24 repays in 48 months."""
        schedule = generate_schedule(sondertilgung_loan, two_extra_payments).unwrap()
        assert len(schedule) < 60
        assert len(schedule) == 48
        assert schedule.entries[11].extra_payment == two_extra_payments.payments[0]
        assert schedule.entries[23].extra_payment == two_extra_payments.payments[1]
        assert schedule.entries[11].applied_extra == Money.from_euros("5000").unwrap()
        assert schedule.entries[12].extra_payment is None

    def test_extra_payments_only_shorten(self, standard_loan, make_plan):
        baseline = len(generate_schedule(standard_loan).unwrap())
        for plan in (make_plan((1, "1")), make_plan((40, "20000")), make_plan((84, "500"))):
            assert len(generate_schedule(standard_loan, plan).unwrap()) <= baseline

    def test_cumulative_principal_with_extras(self, sondertilgung_loan, two_extra_payments):
        schedule = generate_schedule(sondertilgung_loan, two_extra_payments).unwrap()
        assert schedule.final_entry.cumulative_principal == sondertilgung_loan.amount
        assert schedule.final_entry.ending_balance == Money.zero()

    def test_balances_never_increase(self, sondertilgung_loan, two_extra_payments):
        entries = generate_schedule(sondertilgung_loan, two_extra_payments).unwrap().entries
        for previous, current in zip(entries, entries[1:]):
            assert current.ending_balance <= previous.ending_balance

    def test_extra_capped_at_balance(self, sondertilgung_loan, make_plan):
        plan = make_plan((1, "100000"))
        schedule = generate_schedule(sondertilgung_loan, plan).unwrap()
        (entry,) = schedule.entries
        assert entry.extra_payment.amount == Money.from_euros("100000").unwrap()
        assert entry.applied_extra < entry.extra_payment.amount
        assert entry.cumulative_principal == sondertilgung_loan.amount
        assert entry.ending_balance == Money.zero()

    def test_payments_after_payoff_are_ignored(self, sondertilgung_loan, make_plan):
        plan = make_plan((12, "5000"), (24, "5000"), (59, "1000"))
        schedule = generate_schedule(sondertilgung_loan, plan).unwrap()
        assert len(schedule) == 48
        assert schedule.metrics.total_extra_payments == Money.from_euros("10000").unwrap()

    def test_metrics(self, sondertilgung_loan, two_extra_payments):
        metrics = generate_schedule(sondertilgung_loan, two_extra_payments).unwrap().metrics
        assert _close(metrics.total_interest, "1957.43")
        assert _close(metrics.interest_saved_vs_original, "625.97")
        assert metrics.term_reduction_months == 12
        assert metrics.total_extra_payments == Money.from_euros("10000").unwrap()
        assert abs(metrics.effective_interest_rate - Decimal("6.2597")) < Decimal("0.01")
        assert _close(metrics.largest_payment, "5876.39")
        assert _close(metrics.smallest_payment, "767.20")
        assert metrics.payoff_date == PayoffDate(4, 12)


class TestSafetyCeiling:
    def test_interest_only_payment_hits_ceiling(self, standard_loan, monkeypatch):
        monkeypatch.setattr(
            "sondertilgung.engine.amortization.annuity_payment",
            lambda amount, monthly_rate, months: amount * monthly_rate,
        )
        result = generate_schedule(standard_loan)
        assert result.is_err()
        error = result.error
        assert isinstance(error, SimulationError)
        assert error.kind == ErrorKind.SIMULATION_LIMIT_EXCEEDED
        assert error.month == 168
        assert error.balance == Decimal("100000")

    def test_ceiling_follows_policy(self, standard_loan):
        result = generate_schedule(standard_loan, policy=NumericPolicy(safety_term_multiplier=0))
        assert result.error.kind == ErrorKind.SIMULATION_LIMIT_EXCEEDED


class TestScheduleMetrics:
    def test_empty_entries(self, standard_loan):
        result = calculate_schedule_metrics(standard_loan, [])
        assert result.error.kind == ErrorKind.SCHEDULE_ANALYSIS_ERROR

    def test_recomputing_matches_schedule(self, sondertilgung_loan, two_extra_payments):
        schedule = generate_schedule(sondertilgung_loan, two_extra_payments).unwrap()
        assert calculate_schedule_metrics(sondertilgung_loan, schedule.entries).unwrap() == schedule.metrics


class TestApplyAndCompare:
    def test_apply_extra_payments(self, sondertilgung_loan, two_extra_payments):
        base = generate_schedule(sondertilgung_loan).unwrap()
        planned = apply_extra_payments(base, two_extra_payments).unwrap()
        assert len(base) == 60
        assert len(planned) == 48
        assert planned.plan is two_extra_payments

    def test_compare_schedules(self, sondertilgung_loan, two_extra_payments):
        base = generate_schedule(sondertilgung_loan).unwrap()
        planned = generate_schedule(sondertilgung_loan, two_extra_payments).unwrap()
        comparison = compare_schedules(base, planned)
        assert _close(comparison.interest_savings, "625.85", cents=2)
        assert comparison.term_reduction_months == 12
        assert comparison.total_extra_payments == Money.from_euros("10000").unwrap()
        assert Decimal("6") < comparison.return_on_investment < Decimal("6.5")
        assert comparison.is_worthwhile

    def test_identical_schedules_not_worthwhile(self, standard_loan):
        base = generate_schedule(standard_loan).unwrap()
        comparison = compare_schedules(base, base)
        assert comparison.interest_savings == Money.zero()
        assert comparison.return_on_investment == Decimal("0")
        assert not comparison.is_worthwhile


class TestScheduleLookups:
    def test_get_schedule_entry(self, sondertilgung_loan, two_extra_payments):
        schedule = generate_schedule(sondertilgung_loan, two_extra_payments).unwrap()
        assert get_schedule_entry(schedule, _month(12)).month.number == 12
        assert get_schedule_entry(schedule, _month(49)) is None

    def test_get_remaining_balance(self, sondertilgung_loan, two_extra_payments):
        schedule = generate_schedule(sondertilgung_loan, two_extra_payments).unwrap()
        balance = get_remaining_balance(schedule, _month(12)).unwrap()
        assert balance == schedule.entries[11].ending_balance
        missing = get_remaining_balance(schedule, _month(49))
        assert missing.error.kind == ErrorKind.SCHEDULE_ANALYSIS_ERROR


class TestYearlySummary:
    def test_full_years(self, standard_loan):
        schedule = generate_schedule(standard_loan).unwrap()
        yearly = yearly_summary(schedule)
        assert [y.year for y in yearly] == list(range(1, 8))
        assert all(y.payment_count == 12 for y in yearly)
        assert yearly[-1].ending_balance == schedule.final_entry.ending_balance

    def test_totals_match_entries(self, sondertilgung_loan, two_extra_payments):
        schedule = generate_schedule(sondertilgung_loan, two_extra_payments).unwrap()
        yearly = yearly_summary(schedule)
        assert len(yearly) == 4
        assert sum(y.total_paid.cents for y in yearly) == sum(e.total_payment_amount.cents for e in schedule.entries)
        assert sum(y.extra_payments.cents for y in yearly) == 1000000
        assert yearly[0].extra_payments == Money.from_euros("5000").unwrap()
        for y in yearly:
            assert y.total_paid.cents == y.principal.cents + y.interest.cents

    def test_partial_last_year(self, sondertilgung_loan, make_plan):
        schedule = generate_schedule(sondertilgung_loan, make_plan((6, "10000"))).unwrap()
        last = yearly_summary(schedule)[-1]
        assert last.payment_count == len(schedule) - (last.year - 1) * 12
        assert last.ending_balance == Money.zero()

    def test_first_year_summary(self, standard_loan):
        schedule = generate_schedule(standard_loan).unwrap()
        first = first_year_summary(schedule)
        assert first.year == 1
        assert first.payment_count == 12
        assert first.extra_payments == Money.zero()
        assert first.ending_balance == schedule.entries[11].ending_balance


class TestPayoffDate:
    def test_from_month_number(self):
        assert PayoffDate.from_month_number(48) == PayoffDate(4, 12)
        assert PayoffDate.from_month_number(49) == PayoffDate(5, 1)

    def test_on_calendar(self):
        assert PayoffDate(4, 12).on_calendar(date(2025, 1, 31)) == date(2028, 12, 31)
        assert PayoffDate(1, 2).on_calendar(date(2024, 1, 31)) == date(2024, 2, 29)
