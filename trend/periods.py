"""
Day, week and month buckets for transaction views.

A bucket is a ``Period`` with inclusive ``start``/``end`` days. The analytics
series and the breakdown view both work off the same buckets, so a date
always resolves to the same bucket whichever view asks.
"""
from calendar import monthrange
from dataclasses import replace
from datetime import date, timedelta
from typing import Callable, Iterable, Optional, Sequence, Tuple

from dateutil.relativedelta import relativedelta

from trend.config import get_settings
from trend.domain import Period, Transaction

RecurringPredicate = Callable[[Transaction], bool]

SERIES_LENGTH = {"daily": 7, "weekly": 4, "monthly": 5}


def is_recurring_transaction(t: Transaction) -> bool:
    return t.is_recurring


def is_discretionary(t: Transaction, is_recurring: Optional[RecurringPredicate] = None) -> bool:
    if t.is_recurring:
        return False
    if is_recurring is not None and is_recurring(t):
        return False
    return True


def day_period(day: date) -> Period:
    return Period(granularity="daily", label=f"{day:%a} {day.day}", start=day, end=day)


def week_period(day: date, week_start: Optional[int] = None) -> Period:
    if week_start is None:
        week_start = get_settings().WEEK_START
    start = day - timedelta(days=(day.weekday() - week_start) % 7)
    end = start + timedelta(days=6)
    return Period(granularity="weekly", label=f"{start:%d %b} - {end:%d %b}", start=start, end=end)


def month_period(day: date) -> Period:
    start = day.replace(day=1)
    end = start.replace(day=monthrange(start.year, start.month)[1])
    return Period(granularity="monthly", label=f"{start:%b %Y}", start=start, end=end)


def period_for(granularity: str, day: date, week_start: Optional[int] = None) -> Period:
    if granularity == "daily":
        return day_period(day)
    if granularity == "weekly":
        return week_period(day, week_start)
    if granularity == "monthly":
        return month_period(day)
    raise ValueError(f"unknown granularity: {granularity}")


def previous_period(period: Period) -> Period:
    """The bucket immediately before ``period``; amounts are not carried over."""
    if period.granularity == "daily":
        return day_period(period.start - timedelta(days=1))
    if period.granularity == "weekly":
        start = period.start - timedelta(days=7)
        end = period.end - timedelta(days=7)
        return replace(
            period,
            label=f"{start:%d %b} - {end:%d %b}",
            start=start,
            end=end,
            amount=0.0,
            discretionary_amount=0.0,
        )
    if period.granularity == "monthly":
        return month_period(period.start - relativedelta(months=1))
    raise ValueError(f"unknown granularity: {period.granularity}")


def transactions_in_period(
    transactions: Iterable[Transaction],
    period: Period,
    is_recurring: Optional[RecurringPredicate] = None,
) -> Tuple[Transaction, ...]:
    """Non-recurring transactions dated inside ``period``."""
    return tuple(
        t for t in transactions
        if period.contains(t.date) and is_discretionary(t, is_recurring)
    )


def summarize(
    period: Period,
    transactions: Iterable[Transaction],
    is_recurring: Optional[RecurringPredicate] = None,
) -> Period:
    amount = 0.0
    discretionary = 0.0
    for t in transactions:
        if not t.is_expense or not period.contains(t.date):
            continue
        amount += abs(t.amount)
        if is_discretionary(t, is_recurring):
            discretionary += abs(t.amount)
    return replace(period, amount=amount, discretionary_amount=discretionary)


def build_periods(
    transactions: Sequence[Transaction],
    granularity: str,
    today: Optional[date] = None,
    is_recurring: Optional[RecurringPredicate] = None,
    week_start: Optional[int] = None,
) -> Tuple[Period, ...]:
    """The analytics series ending at ``today``, oldest bucket first.

    Seven days, four weeks or five months depending on ``granularity``.
    """
    if granularity not in SERIES_LENGTH:
        raise ValueError(f"unknown granularity: {granularity}")
    if not transactions:
        return ()
    today = today or date.today()

    current = period_for(granularity, today, week_start)
    buckets = [current]
    for _ in range(SERIES_LENGTH[granularity] - 1):
        buckets.append(previous_period(buckets[-1]))
    buckets.reverse()

    return tuple(summarize(p, transactions, is_recurring) for p in buckets)


def find_period(periods: Iterable[Period], selected: date) -> Optional[Period]:
    for p in periods:
        if p.granularity == "daily" and p.date == selected:
            return p
        if p.granularity == "weekly" and p.contains(selected):
            return p
        if p.granularity == "monthly" and (p.month_date.year, p.month_date.month) == (selected.year, selected.month):
            return p
    return None


def highest_spending_period(periods: Sequence[Period]) -> Optional[Period]:
    if not periods:
        return None
    best = periods[0]
    for p in periods[1:]:
        if p.discretionary_amount > best.discretionary_amount:
            best = p
    return best


def resolve_period(
    periods: Sequence[Period], selected: Optional[date] = None
) -> Tuple[Optional[Period], bool]:
    """Bucket for ``selected``, else the highest spending bucket.

    Returns ``(period, is_custom_date)``; ``is_custom_date`` is True only when
    the selected date matched a bucket.
    """
    if selected is not None:
        match = find_period(periods, selected)
        if match is not None:
            return match, True
    return highest_spending_period(periods), False
