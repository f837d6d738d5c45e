"""Unit and property tests for installment schedules, late fees and payoff projections."""

from datetime import date, timedelta

import pytest
from hypothesis import given, settings, strategies as st

from conftest import make_loan
from kasbot.services.schedule import (
    add_months,
    days_late,
    generate_schedule,
    late_fee,
    loan_progress,
    next_open_installment,
    overdue_charges,
    payoff_projection,
)


def test_schedule_clamps_due_day_to_month_end():
    """Day 31 lands on the last day of shorter months."""
    schedule = generate_schedule(3, 500_000, 31, date(2026, 1, 15))

    assert [inst.due_date for inst in schedule] == [
        date(2026, 2, 28),
        date(2026, 3, 31),
        date(2026, 4, 30),
    ]
    assert [inst.installment_no for inst in schedule] == [1, 2, 3]
    assert all(inst.status == "unpaid" for inst in schedule)


def test_schedule_first_installment_is_next_month():
    schedule = generate_schedule(2, 100_000, 5, date(2026, 3, 1))
    assert schedule[0].due_date == date(2026, 4, 5)
    assert schedule[1].due_date == date(2026, 5, 5)


def test_schedule_crosses_year_boundary():
    schedule = generate_schedule(3, 100_000, 10, date(2026, 11, 20))
    assert [inst.due_date for inst in schedule] == [
        date(2026, 12, 10),
        date(2027, 1, 10),
        date(2027, 2, 10),
    ]


def test_schedule_leap_year_february():
    assert add_months(date(2028, 1, 31), 1) == date(2028, 2, 29)


@pytest.mark.parametrize("count, day", [(0, 5), (3, 0), (3, 32)])
def test_schedule_rejects_bad_input(count, day):
    with pytest.raises(ValueError):
        generate_schedule(count, 100_000, day, date(2026, 1, 1))


@settings(max_examples=100)
@given(
    count=st.integers(min_value=1, max_value=36),
    due_day=st.integers(min_value=1, max_value=31),
    start=st.dates(min_value=date(2020, 1, 1), max_value=date(2035, 12, 31)),
)
def test_schedule_one_installment_per_month(count, due_day, start):
    """Every installment falls in its own consecutive month on the clamped day."""
    schedule = generate_schedule(count, 250_000, due_day, start)

    assert len(schedule) == count
    for i, inst in enumerate(schedule, 1):
        expected_month = add_months(start, i, 1)
        assert (inst.due_date.year, inst.due_date.month) == (expected_month.year, expected_month.month)
        assert inst.due_date.day <= due_day
    for earlier, later in zip(schedule, schedule[1:]):
        assert earlier.due_date < later.due_date


def test_percent_monthly_fee_charges_per_started_month():
    assert late_fee("percent_monthly", 5, 500_000, 1) == pytest.approx(25_000)
    assert late_fee("percent_monthly", 5, 500_000, 30) == pytest.approx(25_000)
    assert late_fee("percent_monthly", 5, 500_000, 31) == pytest.approx(50_000)


def test_percent_daily_fee_is_linear():
    assert late_fee("percent_daily", 0.25, 400_000, 4) == pytest.approx(4_000)


def test_fixed_and_none_fees():
    assert late_fee("fixed", 50_000, 400_000, 90) == 50_000
    assert late_fee("none", 0, 400_000, 90) == 0


@given(
    fee_type=st.sampled_from(["percent_monthly", "percent_daily", "fixed", "none"]),
    days=st.integers(min_value=-365, max_value=0),
)
def test_no_fee_before_or_on_due_date(fee_type, days):
    assert late_fee(fee_type, 5, 500_000, days) == 0


@given(
    fee_type=st.sampled_from(["percent_monthly", "percent_daily", "fixed"]),
    value=st.floats(min_value=0, max_value=50),
    amount=st.integers(min_value=1, max_value=50_000_000),
    days=st.integers(min_value=1, max_value=720),
)
def test_fee_never_decreases_with_lateness(fee_type, value, amount, days):
    assert late_fee(fee_type, value, amount, days + 1) >= late_fee(fee_type, value, amount, days)


@given(days=st.integers(min_value=1, max_value=720))
def test_fee_shape_per_type(days):
    assert late_fee("fixed", 50_000, 500_000, days) == 50_000
    assert late_fee("percent_daily", 1, 500_000, days + 1) > late_fee("percent_daily", 1, 500_000, days)
    jumped = late_fee("percent_monthly", 5, 500_000, days + 1) > late_fee("percent_monthly", 5, 500_000, days)
    assert jumped == (days % 30 == 0)


def test_days_late_sign():
    assert days_late(date(2026, 3, 5), date(2026, 3, 10)) == 5
    assert days_late(date(2026, 3, 5), date(2026, 3, 5)) == 0
    assert days_late(date(2026, 3, 5), date(2026, 3, 1)) == -4


def test_next_open_installment_skips_paid():
    loan = make_loan()
    loan.installments[0].status = "paid"
    assert next_open_installment(loan).installment_no == 2

    for inst in loan.installments:
        inst.status = "paid"
    assert next_open_installment(loan) is None


def test_overdue_charges_only_past_due_open_installments():
    loan = make_loan(start_date=date(2026, 1, 1), due_day=5)
    # Installments due 2026-02-05, 03-05, 04-05
    charges = overdue_charges([loan], date(2026, 3, 10))

    assert [c.installment.installment_no for c in charges] == [1, 2]
    assert charges[0].days_late == (date(2026, 3, 10) - date(2026, 2, 5)).days
    assert charges[1].fee == pytest.approx(25_000)
    assert charges[1].total == pytest.approx(525_000)


def test_overdue_charges_ignore_inactive_loans():
    loan = make_loan()
    loan.status = "cancelled"
    assert overdue_charges([loan], date(2027, 1, 1)) == []


def test_loan_progress_counts_paid_installments():
    loan = make_loan(total_installments=4)
    first = loan.installments[0]
    first.status = "paid"
    first.paid_amount = 525_000
    first.late_fee = 25_000
    first.paid_date = date(2026, 2, 10)
    loan.paid_installments = 1

    progress = loan_progress(loan)

    assert progress.percent == 25
    assert progress.paid_amount == 525_000
    assert progress.late_fees_paid == 25_000
    assert progress.remaining_amount == 1_500_000
    assert progress.months_left == 3
    assert progress.next_due == loan.installments[1].due_date
    assert progress.first_paid == progress.last_paid == date(2026, 2, 10)


def test_total_debt_falls_back_to_schedule_sum():
    loan = make_loan(total_installments=10, monthly_amount=300_000)
    loan.total_with_interest = 0
    assert loan_progress(loan).total_debt == 3_000_000


def test_payoff_projection_over_active_loans():
    today = date(2026, 3, 10)
    a = make_loan("Kredivo", total_installments=4, monthly_amount=500_000)
    b = make_loan("SeaBank", total_installments=2, monthly_amount=250_000)
    done = make_loan("Akulaku", total_installments=1, monthly_amount=100_000)
    done.installments[0].status = "paid"
    done.paid_installments = 1
    done.status = "paid_off"

    projection = payoff_projection([a, b, done], today)

    assert projection.remaining_amount == 2_500_000
    assert projection.monthly_obligation == 750_000
    assert projection.months_left == 4
    assert projection.payoff_date == add_months(today, 4)
    assert projection.total_installments == 7
    assert projection.percent == round(1 / 7 * 100)
    assert [p.loan.platform for p in projection.paid_off] == ["Akulaku"]


def test_payoff_projection_without_loans():
    projection = payoff_projection([], date(2026, 3, 10))
    assert projection.percent == 0
    assert projection.months_left is None
    assert projection.payoff_date is None


def test_add_months_keeps_start_day_by_default():
    assert add_months(date(2026, 1, 15), 2) == date(2026, 3, 15)
    assert add_months(date(2026, 1, 15), 0) == date(2026, 1, 15)
    assert add_months(date(2026, 1, 15), 12) == date(2026, 1, 15) + timedelta(days=365)
