import asyncio
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from trend.domain import Period, Transaction
from trend.periods import RecurringPredicate, is_discretionary

# buckets are keyed by their bounds; labels repeat across years
PeriodKey = Tuple[date, date]


async def expenses_by_period(
    trans: List[Transaction],
    periods: Iterable[Period],
    is_recurring: Optional[RecurringPredicate] = None,
) -> Dict[PeriodKey, dict]:
    """Compute expense totals for each period in parallel.

    Returns mapping (start, end) -> {"amount", "discretionary_amount", "count"}
    """
    async def period_total(period: Period) -> tuple[PeriodKey, dict]:
        amount = 0.0
        discretionary = 0.0
        count = 0
        for t in trans:
            if not t.is_expense or not period.contains(t.date):
                continue
            amount += abs(t.amount)
            count += 1
            if is_discretionary(t, is_recurring):
                discretionary += abs(t.amount)
        await asyncio.sleep(0)  # cooperate
        return (period.start, period.end), {"amount": amount, "discretionary_amount": discretionary, "count": count}

    results = await asyncio.gather(*(period_total(p) for p in periods))
    return {k: v for k, v in results}


async def category_totals_by_period(
    trans: List[Transaction],
    periods: Iterable[Period],
    is_recurring: Optional[RecurringPredicate] = None,
) -> Dict[PeriodKey, Dict[str, float]]:
    """Discretionary spending per category for each period, in parallel."""
    async def period_categories(period: Period) -> tuple[PeriodKey, Dict[str, float]]:
        totals: Dict[str, float] = {}
        for t in trans:
            if t.is_expense and period.contains(t.date) and is_discretionary(t, is_recurring):
                name = t.category or "Other"
                totals[name] = totals.get(name, 0.0) + abs(t.amount)
        await asyncio.sleep(0)
        return (period.start, period.end), totals

    results = await asyncio.gather(*(period_categories(p) for p in periods))
    return {k: v for k, v in results}
