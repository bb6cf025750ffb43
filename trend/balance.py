from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Tuple

from dateutil.relativedelta import relativedelta

from trend.domain import IncomeData, Transaction
from trend.transforms import to_number

FREQUENCY_DAYS = {"weekly": 7, "fortnightly": 14, "monthly": 30}


@dataclass(frozen=True)
class BalanceSummary:
    income: float
    expenses: float
    goal_contributions: float
    left_to_spend: float
    percentage_remaining: int
    daily_budget: float
    is_over_budget: bool
    is_close_to_limit: bool


def total_expenses(transactions: Iterable[Transaction], selected: date) -> float:
    """Spending on ``selected`` plus every recurring commitment."""
    total = 0.0
    for t in transactions:
        if not t.is_expense:
            continue
        if t.is_recurring or t.date == selected:
            total += abs(t.amount)
    return total


def balance_summary(
    income: Optional[IncomeData], expenses: float, goal_contributions: float = 0.0
) -> BalanceSummary:
    amount = to_number(income.income) if income else 0.0
    frequency = income.frequency if income else "monthly"
    left = amount - to_number(expenses) - to_number(goal_contributions)
    remaining = round(left / amount * 100) if amount > 0 else 0

    return BalanceSummary(
        income=amount,
        expenses=to_number(expenses),
        goal_contributions=to_number(goal_contributions),
        left_to_spend=left,
        percentage_remaining=remaining,
        daily_budget=left / FREQUENCY_DAYS.get(frequency, 30),
        is_over_budget=left < 0,
        is_close_to_limit=0 < remaining < 20,
    )


def parse_pay_date(value: str) -> date:
    """DD/MM/YY as entered in the income setup."""
    return datetime.strptime(value, "%d/%m/%y").date()


def pay_period(
    income: Optional[IncomeData],
    selected: Optional[date] = None,
    today: Optional[date] = None,
) -> Optional[Tuple[date, date]]:
    """Start and end of the pay period ending the day before the next pay date.

    The period is shifted by whole months when ``selected`` is in a different
    month than ``today``.
    """
    if income is None or not income.next_pay_date or not income.frequency:
        return None
    try:
        next_pay = parse_pay_date(income.next_pay_date)
    except ValueError:
        return None

    if income.frequency == "monthly":
        start = next_pay - relativedelta(months=1)
    else:
        start = next_pay - timedelta(days=FREQUENCY_DAYS.get(income.frequency, 30))
    end = next_pay - timedelta(days=1)

    today = today or date.today()
    selected = selected or today
    shift = (selected.year - today.year) * 12 + selected.month - today.month
    if shift:
        start += relativedelta(months=shift)
        end += relativedelta(months=shift)
    return start, end


def format_pay_period(period: Tuple[date, date]) -> str:
    start, end = period
    return f"{start.day} {start:%b %y} - {end.day} {end:%b %y}"
