import math
from dataclasses import replace
from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from trend.domain import Goal, IncomeData, Transaction
from trend.transforms import now_iso, to_number


def goal_progress(goal: Optional[Goal]) -> float:
    """Percent complete in [0, 100].

    For debt goals this is the share already paid off.
    """
    if goal is None:
        return 0.0
    current = to_number(goal.current)
    progress = 0.0

    if goal.type == "debt":
        original = to_number(goal.original_amount) or to_number(goal.target)
        if original > 0:
            progress = min((original - current) / original * 100, 100)
    else:
        target = to_number(goal.target)
        if target > 0:
            progress = min(current / target * 100, 100)

    return max(0.0, progress)


def days_until_deadline(goal: Goal, today: Optional[date] = None) -> Optional[int]:
    if goal.deadline is None:
        return None
    today = today or date.today()
    return (goal.deadline - today).days


def is_overdue(goal: Goal, today: Optional[date] = None) -> bool:
    if goal.deadline is None:
        return False
    today = today or date.today()
    return today > goal.deadline and goal_progress(goal) < 100


def monthly_needed(goal: Goal, today: Optional[date] = None) -> float:
    days_left = days_until_deadline(goal, today)
    if not days_left or days_left <= 0:
        return 0.0
    months_left = max(1, math.ceil(days_left / 30))

    if goal.type == "debt":
        remaining = to_number(goal.current)
    else:
        remaining = to_number(goal.target) - to_number(goal.current)
    return remaining / months_left


# --- mutations; each returns a new goal

def apply_progress(goal: Goal, amount: float) -> Goal:
    """Record a contribution: adds for savings/spending, pays down debt."""
    amount = to_number(amount)
    if amount <= 0:
        raise ValueError("Amount must be a positive number")

    current = to_number(goal.current)
    if goal.type == "debt":
        current = max(0.0, current - amount)
    else:
        current = current + amount
    return replace(goal, current=current, updated_at=now_iso())


def _category_name(key: Optional[str], categories) -> Optional[str]:
    if not key:
        return None
    for cat in categories:
        if cat.id == key:
            return cat.name.lower()
    # transactions may carry the category name instead of its id
    return key.lower()


def apply_spending_transaction(
    goals: Sequence[Goal],
    categories: Sequence,
    new: Optional[Transaction] = None,
    original: Optional[Transaction] = None,
) -> Tuple[Goal, ...]:
    """Move spending goals for a created, edited or removed transaction.

    ``original`` is backed out first, then ``new`` is added; goals match on
    the lower-cased category name.
    """
    updated = list(goals)

    def shift(name: Optional[str], delta: float) -> None:
        if not name:
            return
        for i, goal in enumerate(updated):
            if goal.type != "spending" or not goal.category:
                continue
            if goal.category.lower() == name:
                current = max(0.0, to_number(goal.current) + delta)
                updated[i] = replace(goal, current=current, updated_at=now_iso())

    if original is not None:
        amount = abs(to_number(original.amount))
        if amount > 0:
            shift(_category_name(original.category, categories), -amount)

    if new is not None:
        amount = abs(to_number(new.amount))
        if amount > 0:
            shift(_category_name(new.category, categories), amount)

    return tuple(updated)


def complete_goal(goal: Goal) -> Goal:
    return replace(
        goal,
        is_active=False,
        completed_date=now_iso(),
        show_on_balance_card=False,
    )


def toggle_balance_card(goal: Goal) -> Goal:
    return replace(goal, show_on_balance_card=not goal.show_on_balance_card, updated_at=now_iso())


# --- read helpers

def balance_card_goals(goals: Iterable[Goal]) -> Tuple[Goal, ...]:
    return tuple(g for g in goals if g.show_on_balance_card and g.is_active)


def total_goal_contributions(goals: Iterable[Goal]) -> float:
    return sum(to_number(g.auto_contribute) for g in balance_card_goals(goals) if g.auto_contribute)


def smart_suggestions(
    goals: Sequence[Goal],
    transactions: Sequence[Transaction],
    income: Optional[IncomeData],
    today: Optional[date] = None,
) -> List[dict]:
    """Goal ideas from the last 30 days of spending."""
    if income is None or not transactions:
        return []

    today = today or date.today()
    cutoff = today - timedelta(days=30)
    monthly_spending = sum(
        abs(to_number(t.amount)) for t in transactions
        if t.is_expense and cutoff <= t.date <= today
    )
    available = max(0.0, to_number(income.income) - monthly_spending)
    suggestions = []

    if monthly_spending > 0:
        emergency_target = round(monthly_spending * 3)
        existing = next(
            (g for g in goals if g.type == "savings"
             and ("emergency" in g.title.lower() or "emergency" in g.category.lower())),
            None,
        )
        if existing is None or to_number(existing.current) < emergency_target:
            suggestions.append({
                "type": "savings",
                "title": "3-Month Emergency Fund",
                "target": emergency_target,
                "reason": "Recommended based on your monthly spending",
                "priority": "high",
                "category": "Security",
                "suggestedContribution": min(available * 0.2, monthly_spending * 0.1),
            })

    if available > 200:
        has_vacation = any(
            "travel" in g.category.lower() or "vacation" in g.title.lower() for g in goals
        )
        if not has_vacation:
            suggestions.append({
                "type": "savings",
                "title": "Vacation Fund",
                "target": 2000,
                "reason": "Build memories with a getaway",
                "priority": "medium",
                "category": "Travel",
                "suggestedContribution": min(available * 0.15, 300),
            })

    return suggestions
