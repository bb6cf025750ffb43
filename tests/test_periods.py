from datetime import date

import pytest

from trend.domain import INCOME, Transaction
from trend.periods import (
    build_periods, day_period, find_period, highest_spending_period, month_period,
    period_for, previous_period, resolve_period, transactions_in_period, week_period,
)


def make_tx(id, day, amount, category="food", recurrence="none", type="EXPENSE", description=""):
    return Transaction(id=id, date=day, amount=amount, category=category, description=description,
                       recurrence=recurrence, type=type)


def test_week_period_monday_start():
    p = week_period(date(2025, 1, 15), week_start=0)
    assert p.start == date(2025, 1, 13)
    assert p.end == date(2025, 1, 19)
    assert p.contains(date(2025, 1, 19))
    assert not p.contains(date(2025, 1, 20))


def test_week_period_sunday_start():
    p = week_period(date(2025, 1, 15), week_start=6)
    assert p.start == date(2025, 1, 12)
    assert p.end == date(2025, 1, 18)


def test_month_period_bounds():
    p = month_period(date(2024, 2, 10))
    assert p.start == date(2024, 2, 1)
    assert p.end == date(2024, 2, 29)
    assert p.label == "Feb 2024"


def test_previous_period_steps_back_one_bucket():
    assert previous_period(day_period(date(2025, 3, 1))).start == date(2025, 2, 28)
    week = previous_period(week_period(date(2025, 1, 15), week_start=0))
    assert (week.start, week.end) == (date(2025, 1, 6), date(2025, 1, 12))
    month = previous_period(month_period(date(2025, 3, 31)))
    assert (month.start, month.end) == (date(2025, 2, 1), date(2025, 2, 28))


def test_period_for_unknown_granularity():
    with pytest.raises(ValueError):
        period_for("yearly", date(2025, 1, 1))


def test_build_periods_daily_series():
    today = date(2025, 1, 15)
    trans = [
        make_tx("t1", today, 40),
        make_tx("t2", date(2025, 1, 14), 100, category="rent", recurrence="monthly"),
        make_tx("t3", date(2025, 1, 9), 10),
        make_tx("t4", date(2025, 1, 8), 999),
    ]
    periods = build_periods(trans, "daily", today)

    assert len(periods) == 7
    assert periods[0].start == date(2025, 1, 9)
    assert periods[-1].start == today
    assert periods[-1].amount == 40
    assert periods[-2].amount == 100
    assert periods[-2].discretionary_amount == 0
    assert periods[0].discretionary_amount == 10


def test_build_periods_counts_expenses_only():
    today = date(2025, 1, 15)
    trans = [make_tx("t1", today, 40), make_tx("t2", today, 1000, category="salary", type=INCOME)]
    periods = build_periods(trans, "weekly", today, week_start=0)
    assert len(periods) == 4
    assert periods[-1].amount == 40
    assert periods[-1].discretionary_amount == 40


def test_build_periods_monthly_series():
    periods = build_periods([make_tx("t1", date(2025, 1, 2), 5)], "monthly", date(2025, 1, 20))
    assert [p.start for p in periods] == [
        date(2024, 9, 1), date(2024, 10, 1), date(2024, 11, 1), date(2024, 12, 1), date(2025, 1, 1)
    ]


def test_build_periods_empty():
    assert build_periods([], "weekly", date(2025, 1, 15)) == ()


def test_each_transaction_in_exactly_one_bucket():
    today = date(2025, 1, 31)
    trans = [make_tx(f"t{i}", date(2025, 1, i), i) for i in range(4, 32)]
    for granularity in ("daily", "weekly", "monthly"):
        periods = build_periods(trans, granularity, today, week_start=0)
        first, last = periods[0].start, periods[-1].end
        for t in trans:
            if first <= t.date <= last:
                assert sum(p.contains(t.date) for p in periods) == 1


def test_transactions_in_period_skips_recurring():
    p = week_period(date(2025, 1, 15), week_start=0)
    trans = [
        make_tx("t1", date(2025, 1, 14), 10),
        make_tx("t2", date(2025, 1, 14), 10, recurrence="weekly"),
        make_tx("t3", date(2025, 1, 20), 10),
    ]
    assert [t.id for t in transactions_in_period(trans, p)] == ["t1"]


def test_transactions_in_period_custom_recurring_predicate():
    p = day_period(date(2025, 1, 14))
    trans = [make_tx("t1", date(2025, 1, 14), 10, description="Netflix"),
             make_tx("t2", date(2025, 1, 14), 10, description="Lunch")]
    found = transactions_in_period(trans, p, lambda t: "netflix" in t.description.lower())
    assert [t.id for t in found] == ["t2"]


def test_resolve_period_selected_and_fallback():
    today = date(2025, 1, 15)
    trans = [make_tx("t1", date(2025, 1, 13), 200), make_tx("t2", today, 20)]
    periods = build_periods(trans, "daily", today)

    period, is_custom = resolve_period(periods, today)
    assert period.start == today
    assert is_custom is True

    period, is_custom = resolve_period(periods, date(2024, 6, 1))
    assert period.start == date(2025, 1, 13)
    assert is_custom is False

    assert resolve_period(periods)[0] == highest_spending_period(periods)


def test_find_period_monthly_matches_any_day_of_month():
    periods = build_periods([make_tx("t1", date(2025, 1, 2), 5)], "monthly", date(2025, 1, 20))
    assert find_period(periods, date(2024, 11, 30)).start == date(2024, 11, 1)
    assert find_period(periods, date(2023, 11, 30)) is None
