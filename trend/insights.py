"""
Takeout trend: how much of food spending went to delivery and takeaway,
compared with the previous period.
"""
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from trend.domain import Insight, Transaction
from trend.rules import DEFAULT_TAKEOUT_KEYWORDS, is_takeout

FOOD_CATEGORY = "food"
INSIGHT_CATEGORY = "Takeout Trend"

# granularity -> (similar band, strong band, previous-period wording, base noun)
BANDS = {
    "daily": (10, 20, "yesterday", "food spending"),
    "weekly": (5, 15, "last week", "food budget"),
    "monthly": (5, 10, "last month", "food budget"),
}

SUGGESTIONS = {
    "daily": {
        "similar": "Consistent with yesterday - maintaining balance",
        "up_strong": "Higher takeout spending than yesterday - consider cooking dinner",
        "down_strong": "Less takeout than yesterday - nice improvement!",
        "up": "Slightly more takeout than yesterday",
        "down": "Less takeout than yesterday - good progress",
    },
    "weekly": {
        "similar": "Consistent takeout habits week-to-week",
        "up_strong": "Takeout increased significantly - try meal prep this week",
        "down_strong": "Great job reducing takeout! Keep up the cooking streak",
        "up": "Takeout increased slightly from last week",
        "down": "Nice improvement from last week!",
    },
    "monthly": {
        "similar": "Consistent monthly takeout spending patterns",
        "up_strong": "Monthly takeout increased - consider meal planning strategies",
        "down_strong": "Excellent monthly improvement in cooking habits!",
        "up": "Slight increase from last month",
        "down": "Good monthly progress on cooking more!",
    },
}

PERIOD_NOUN = {"daily": "day", "weekly": "week", "monthly": "month"}


@dataclass(frozen=True)
class TakeoutData:
    count: int = 0
    spending: float = 0.0
    total_food: float = 0.0
    food_count: int = 0

    @property
    def percentage(self) -> float:
        return self.spending / self.total_food * 100 if self.total_food > 0 else 0.0


def takeout_data(
    transactions: Iterable[Transaction], keywords: Sequence[str] = DEFAULT_TAKEOUT_KEYWORDS
) -> TakeoutData:
    food = [t for t in transactions if (t.category or "").lower() == FOOD_CATEGORY]
    if not food:
        return TakeoutData()
    takeout = [t for t in food if is_takeout(t.description, keywords)]
    return TakeoutData(
        count=len(takeout),
        spending=sum(abs(t.amount) for t in takeout),
        total_food=sum(abs(t.amount) for t in food),
        food_count=len(food),
    )


def takeout_insight(
    current: Iterable[Transaction],
    previous: Iterable[Transaction],
    granularity: str = "weekly",
    keywords: Sequence[str] = DEFAULT_TAKEOUT_KEYWORDS,
) -> Optional[Insight]:
    """Compare takeout share of food spending between two periods.

    Returns None when there is nothing to say: no food spending in the
    current period, no takeout in either period, or a daily view without
    takeout on the previous day to compare against.
    """
    if granularity not in BANDS:
        raise ValueError(f"unknown granularity: {granularity}")

    now = takeout_data(current, keywords)
    if now.food_count == 0:
        return None
    before = takeout_data(previous, keywords)

    if before.count == 0:
        if now.count == 0 or granularity == "daily":
            return None
        plural = "s" if now.count != 1 else ""
        return Insight(
            type="info",
            category=INSIGHT_CATEGORY,
            message=f"{now.count} takeout order{plural} this {PERIOD_NOUN[granularity]} "
                    f"(first takeout spending this period)",
            suggestion="New takeout spending this period",
            amount=now.spending,
        )

    if granularity == "daily" and now.count == 0:
        return Insight(
            type="success",
            category=INSIGHT_CATEGORY,
            message="No takeout orders today (had takeout yesterday)",
            suggestion="Great job cooking at home today!",
            amount=0.0,
        )

    similar, strong, previous_label, noun = BANDS[granularity]
    texts = SUGGESTIONS[granularity]
    change = now.percentage - before.percentage
    kind = "info"

    if abs(change) < similar:
        message = f"{now.percentage:.0f}% of {noun} (similar to {previous_label})"
        suggestion = texts["similar"]
    elif change > strong:
        kind = "warning"
        message = f"{now.percentage:.0f}% of {noun} (up from {before.percentage:.0f}% {previous_label})"
        suggestion = texts["up_strong"]
    elif change < -strong:
        kind = "success"
        message = f"{now.percentage:.0f}% of {noun} (down from {before.percentage:.0f}% {previous_label})"
        suggestion = texts["down_strong"]
    elif change > 0:
        message = f"{now.percentage:.0f}% of {noun} (up from {before.percentage:.0f}% {previous_label})"
        suggestion = texts["up"]
    else:
        message = f"{now.percentage:.0f}% of {noun} (down from {before.percentage:.0f}% {previous_label})"
        suggestion = texts["down"]

    return Insight(type=kind, category=INSIGHT_CATEGORY, message=message, suggestion=suggestion,
                   amount=now.spending)
