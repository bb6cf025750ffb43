from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from trend.domain import Breakdown, Category, CategoryTotal, Insight, Period, SubcategoryTotal, Transaction
from trend.functional import safe_category
from trend.periods import RecurringPredicate, is_discretionary, resolve_period, transactions_in_period
from trend.rules import DEFAULT_SUBCATEGORY_RULES, KeywordRule, category_alias, subcategory_name

DEFAULT_CATEGORY = "Other"

# category name aliases -> (insight label, suggestion)
THRESHOLD_INSIGHTS = (
    (("food", "restaurant", "dining", "groceries"), "Food spending",
     "Consider meal planning to optimize food expenses"),
    (("transport", "transportation", "gas", "fuel", "car"), "Transport costs",
     "Consider public transport or carpooling options"),
)
INSIGHT_THRESHOLD = 200


def percentage(part: float, total: float) -> str:
    return f"{part / total * 100:.1f}" if total > 0 else "0.0"


def category_info(categories: Sequence[Category], name: str) -> Optional[Category]:
    """Metadata by id or name, then through the standard name aliases."""
    found = safe_category(categories, name)
    if not found.is_some():
        alias = category_alias(name)
        if alias is not None:
            found = safe_category(categories, alias)
    return found.get_or_else(None)


def discretionary_expenses(
    transactions: Iterable[Transaction], is_recurring: Optional[RecurringPredicate] = None
) -> Tuple[Transaction, ...]:
    return tuple(t for t in transactions if t.is_expense and is_discretionary(t, is_recurring))


def subcategory_totals(
    category_amount: float,
    transactions: Sequence[Transaction],
    category: Category,
    rules: Sequence[KeywordRule] = DEFAULT_SUBCATEGORY_RULES,
) -> Tuple[SubcategoryTotal, ...]:
    totals: Dict[str, float] = defaultdict(float)
    for t in transactions:
        totals[subcategory_name(t.description, category.subcategories, rules)] += abs(t.amount)

    ordered = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return tuple(
        SubcategoryTotal(name=name, amount=amount, percentage=percentage(amount, category_amount))
        for name, amount in ordered
    )


def category_breakdown(
    transactions: Iterable[Transaction],
    categories: Sequence[Category] = (),
    rules: Sequence[KeywordRule] = DEFAULT_SUBCATEGORY_RULES,
    is_recurring: Optional[RecurringPredicate] = None,
) -> Tuple[CategoryTotal, ...]:
    """Per-category totals of discretionary spending, largest first."""
    totals: Dict[str, float] = defaultdict(float)
    grouped: Dict[str, List[Transaction]] = defaultdict(list)

    for t in discretionary_expenses(transactions, is_recurring):
        name = t.category or DEFAULT_CATEGORY
        totals[name] += abs(t.amount)
        grouped[name].append(t)

    period_total = sum(totals.values())
    result = []
    for name, amount in totals.items():
        info = category_info(categories, name)
        subs: Tuple[SubcategoryTotal, ...] = ()
        has_subs = bool(info and info.has_subcategories)
        if has_subs:
            subs = subcategory_totals(amount, grouped[name], info, rules)
        result.append(CategoryTotal(
            name=name,
            amount=amount,
            percentage=percentage(amount, period_total),
            transactions=tuple(grouped[name]),
            subcategories=subs,
            has_subcategories=has_subs,
        ))

    return tuple(sorted(result, key=lambda c: c.amount, reverse=True))


def threshold_insights(categories: Sequence[CategoryTotal]) -> Tuple[Insight, ...]:
    insights = []
    for aliases, label, suggestion in THRESHOLD_INSIGHTS:
        match = next((c for c in categories if c.name.lower() in aliases), None)
        if match is None or match.amount <= INSIGHT_THRESHOLD:
            continue
        insights.append(Insight(
            type="info",
            category=label,
            message=f"{label}: ${match.amount:.0f} this period",
            suggestion=suggestion,
            amount=match.amount,
        ))
    return tuple(insights)


def discretionary_breakdown(
    transactions: Sequence[Transaction],
    periods: Sequence[Period],
    selected: Optional[date] = None,
    categories: Sequence[Category] = (),
    rules: Sequence[KeywordRule] = DEFAULT_SUBCATEGORY_RULES,
    is_recurring: Optional[RecurringPredicate] = None,
) -> Breakdown:
    """Category breakdown for the selected bucket, or the highest spending one."""
    if not transactions or not periods:
        return Breakdown()

    period, is_custom = resolve_period(periods, selected)
    if period is None or period.discretionary_amount == 0:
        return Breakdown(is_custom_date=is_custom)

    in_period = transactions_in_period(transactions, period, is_recurring)
    totals = category_breakdown(in_period, categories, rules, is_recurring)
    return Breakdown(
        period=period,
        categories=totals,
        insights=threshold_insights(totals),
        is_custom_date=is_custom,
    )
