import logging
from datetime import date
from typing import Any, Callable, Dict, Optional, Sequence

from trend.aggregation import discretionary_breakdown
from trend.analytics import analytics_summary
from trend.functional import validate_transaction
from trend.insights import takeout_insight
from trend.periods import build_periods, previous_period, transactions_in_period

logger = logging.getLogger(__name__)

Validator = Callable[[Sequence], Sequence[str]]
Calculator = Callable[..., Dict[str, Any]]


def invalid_transactions(transactions: Sequence) -> Sequence[str]:
    messages = []
    for t in transactions:
        result = validate_transaction(t)
        if not result.is_right():
            error = result.get_error()
            messages.append(f"{t.id or '?'}: {error['message']}")
    return messages


def series_calculator(granularity, periods, transactions, categories, acc) -> Dict[str, Any]:
    return {"periods": periods, "summary": analytics_summary(periods)}


def breakdown_calculator(granularity, periods, transactions, categories, acc) -> Dict[str, Any]:
    breakdown = discretionary_breakdown(transactions, periods, acc.get("selected"), categories)
    return {"breakdown": breakdown}


def takeout_calculator(granularity, periods, transactions, categories, acc) -> Dict[str, Any]:
    breakdown = acc.get("breakdown")
    if breakdown is None or breakdown.period is None:
        return {"takeout": None}
    period = breakdown.period
    current = transactions_in_period(transactions, period)
    previous = transactions_in_period(transactions, previous_period(period))
    return {"takeout": takeout_insight(current, previous, granularity)}


DEFAULT_CALCULATORS = (series_calculator, breakdown_calculator, takeout_calculator)


class PeriodReportService:
    """Facade for the trend view using injected validators and calculators.

    validators: functions taking (transactions) -> Sequence[str]
    calculators: functions taking (granularity, periods, transactions, categories, acc) -> dict
    (partial results merged into ``acc`` for the calculators that follow)
    """

    def __init__(
        self,
        calculators: Sequence[Calculator] = DEFAULT_CALCULATORS,
        validators: Sequence[Validator] = (invalid_transactions,),
        week_start: Optional[int] = None,
    ):
        self.calculators = calculators
        self.validators = validators
        self.week_start = week_start

    def period_report(
        self,
        granularity: str,
        transactions: Sequence,
        categories: Sequence = (),
        selected: Optional[date] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Run validators and calculators and return the report with intermediate steps."""
        report = {
            "granularity": granularity,
            "selected": selected,
            "validation": [],
            "steps": [],
            "result": {},
        }

        for v in self.validators:
            try:
                msgs = v(transactions)
            except Exception as e:
                logger.exception("Validator %s failed", getattr(v, "__name__", v))
                msgs = [f"validator_error: {e}"]
            report["validation"].append({"validator": getattr(v, "__name__", str(v)), "messages": list(msgs)})

        periods = build_periods(transactions, granularity, today, week_start=self.week_start)
        acc: Dict[str, Any] = {"selected": selected}
        for calc in self.calculators:
            out = calc(granularity, periods, transactions, categories, acc)
            report["steps"].append({"calculator": getattr(calc, "__name__", str(calc)), "output": out})
            if isinstance(out, dict):
                acc.update(out)

        breakdown = acc.get("breakdown")
        insights = list(breakdown.insights) if breakdown is not None else []
        if acc.get("takeout") is not None:
            insights.append(acc["takeout"])
        acc["insights"] = tuple(insights)

        report["result"] = acc
        return report
