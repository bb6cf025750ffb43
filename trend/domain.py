from dataclasses import dataclass, field
import datetime
from typing import Literal, Optional

Granularity = Literal["daily", "weekly", "monthly"]
GoalType = Literal["savings", "spending", "debt"]
Priority = Literal["high", "medium", "low"]
InsightType = Literal["info", "warning", "success"]

INCOME = "INCOME"
EXPENSE = "EXPENSE"

RECURRENCE_NONE = "none"
RECURRING_VALUES = ("weekly", "fortnightly", "monthly", "sixmonths", "yearly")
RECURRENCES = (RECURRENCE_NONE,) + RECURRING_VALUES

GOAL_TYPES = ("savings", "spending", "debt")
PRIORITIES = ("high", "medium", "low")
GRANULARITIES = ("daily", "weekly", "monthly")


@dataclass(frozen=True)
class Transaction:
    id: str
    date: datetime.date
    amount: float            # stored as an absolute value, see signed_amount
    category: str = "Other"  # category id or name
    description: str = ""
    recurrence: str = RECURRENCE_NONE
    type: str = EXPENSE      # INCOME or EXPENSE
    subcategory_id: Optional[str] = None

    @property
    def is_recurring(self) -> bool:
        return self.recurrence in RECURRING_VALUES

    @property
    def is_expense(self) -> bool:
        return self.type != INCOME

    @property
    def signed_amount(self) -> float:
        # display value: expenses negative, income positive
        value = abs(self.amount)
        return -value if self.is_expense else value


@dataclass(frozen=True)
class Goal:
    id: str
    title: str
    type: GoalType
    target: float = 0.0
    current: float = 0.0
    original_amount: Optional[float] = None
    deadline: Optional[datetime.date] = None
    category: str = "Other"
    priority: Priority = "medium"
    auto_contribute: float = 0.0
    show_on_balance_card: bool = False
    is_active: bool = True
    completed_date: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(frozen=True)
class Subcategory:
    id: str
    name: str
    icon: str = ""


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    icon: str = "document-text-outline"
    color: str = "#A8A8A8"
    has_subcategories: bool = False
    subcategories: tuple[Subcategory, ...] = ()
    is_custom: bool = False
    description: str = ""


@dataclass(frozen=True)
class Period:
    """A day, week or month bucket of transactions.

    ``start`` and ``end`` are inclusive calendar days; a daily bucket has
    ``start == end``.
    """
    granularity: Granularity
    label: str
    start: datetime.date
    end: datetime.date
    amount: float = 0.0
    discretionary_amount: float = 0.0

    @property
    def date(self) -> datetime.date:
        return self.start

    @property
    def month_date(self) -> datetime.date:
        return self.start.replace(day=1)

    def contains(self, day: datetime.date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True)
class SubcategoryTotal:
    name: str
    amount: float
    percentage: str  # one decimal, relative to the parent category


@dataclass(frozen=True)
class CategoryTotal:
    name: str
    amount: float
    percentage: str  # one decimal, relative to the period total
    transactions: tuple[Transaction, ...] = ()
    subcategories: tuple[SubcategoryTotal, ...] = ()
    has_subcategories: bool = False


@dataclass(frozen=True)
class Insight:
    type: InsightType
    category: str
    message: str
    suggestion: str
    amount: Optional[float] = None


@dataclass(frozen=True)
class Breakdown:
    period: Optional[Period] = None
    categories: tuple[CategoryTotal, ...] = ()
    insights: tuple[Insight, ...] = ()
    is_custom_date: bool = False


@dataclass(frozen=True)
class IncomeData:
    income: float
    frequency: str = "monthly"         # weekly | fortnightly | monthly
    next_pay_date: Optional[str] = None  # DD/MM/YY


@dataclass(frozen=True)
class UserPreferences:
    theme: str = "system"
    language: str = "en"
    notifications_enabled: bool = True
    sync_enabled: bool = True


@dataclass(frozen=True)
class UserAuthData:
    user_id: str
    email: str
    display_name: Optional[str] = None
    email_verified: bool = False
    created_at: float = 0.0
    last_login_at: float = 0.0
    preferences: UserPreferences = field(default_factory=UserPreferences)
