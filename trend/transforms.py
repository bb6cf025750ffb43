import math
from datetime import date, datetime
from typing import Any, Optional, Tuple

from dateutil.parser import isoparse

from trend.domain import (
    Category, Goal, IncomeData, Subcategory, Transaction, UserAuthData, UserPreferences,
    EXPENSE, GOAL_TYPES, INCOME, PRIORITIES, RECURRENCE_NONE,
)
from trend.functional import Either, Left, Right


def to_number(value: Any) -> float:
    """Coerce to float; missing, NaN and non-numeric values become 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def parse_day(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return isoparse(str(value)).date()
    except (TypeError, ValueError):
        return None


def now_iso() -> str:
    return datetime.now().isoformat()


# --- transactions

def transaction_from_dict(d: dict) -> Transaction:
    day = parse_day(d.get("date"))
    if day is None:
        raise ValueError(f"invalid transaction date: {d.get('date')!r}")
    raw_type = str(d.get("type") or "").upper()
    amount = to_number(d.get("amount"))
    if raw_type not in (INCOME, EXPENSE):
        raw_type = EXPENSE
    return Transaction(
        id=str(d["id"]),
        date=day,
        amount=abs(amount),
        category=d.get("category") or "Other",
        description=d.get("description") or "",
        recurrence=d.get("recurrence") or RECURRENCE_NONE,
        type=raw_type,
        subcategory_id=d.get("subcategoryId"),
    )


def transaction_to_dict(t: Transaction) -> dict:
    return {
        "id": t.id,
        "date": t.date.isoformat(),
        "amount": t.amount,
        "category": t.category,
        "subcategoryId": t.subcategory_id,
        "description": t.description,
        "recurrence": t.recurrence,
        "type": t.type,
    }


def add_transaction(
    trans: Tuple[Transaction, ...], t: Transaction
) -> Tuple[Transaction, ...]:
    return trans + (t,)


def replace_transaction(
    trans: Tuple[Transaction, ...], t: Transaction
) -> Tuple[Transaction, ...]:
    return tuple(t if existing.id == t.id else existing for existing in trans)


def remove_transaction(
    trans: Tuple[Transaction, ...], tid: str
) -> Tuple[Transaction, ...]:
    return tuple(t for t in trans if t.id != tid)


# --- goals

def sanitize_goal(d: dict) -> dict:
    """Fill defaults and coerce numeric fields of a raw goal record."""
    sanitized = {
        "showOnBalanceCard": False,
        "priority": "medium",
        "current": 0,
        "autoContribute": 0,
        "isActive": True,
        **d,
    }
    sanitized["current"] = to_number(sanitized.get("current"))
    if sanitized.get("target"):
        sanitized["target"] = to_number(sanitized["target"])
    if sanitized.get("originalAmount"):
        sanitized["originalAmount"] = to_number(sanitized["originalAmount"])
    sanitized["autoContribute"] = to_number(sanitized.get("autoContribute"))
    if isinstance(sanitized.get("title"), str):
        sanitized["title"] = sanitized["title"].strip()
    if isinstance(sanitized.get("category"), str):
        sanitized["category"] = sanitized["category"].strip()
    else:
        sanitized["category"] = "Other"
    if sanitized.get("priority") not in PRIORITIES:
        sanitized["priority"] = "medium"
    return sanitized


def validate_goal(d: dict) -> Either[dict, dict]:
    if not isinstance(d, dict):
        return Left({"error": "invalid_goal", "message": "Goal must be a mapping"})

    title = d.get("title")
    if not title or not isinstance(title, str):
        return Left({"error": "missing_title", "message": "Goal title is required"})

    if d.get("type") not in GOAL_TYPES:
        return Left({
            "error": "invalid_type",
            "message": f"Goal type must be one of {', '.join(GOAL_TYPES)}",
            "type": d.get("type"),
        })

    if d["type"] == "debt":
        if to_number(d.get("originalAmount")) <= 0:
            return Left({
                "error": "invalid_original_amount",
                "message": "Debt goals need a positive original amount",
            })
    elif d["type"] != "spending":
        if to_number(d.get("target")) <= 0:
            return Left({
                "error": "invalid_target",
                "message": "Savings goals need a positive target",
            })

    return Right(d)


def validate_goal_form(d: dict, today: Optional[date] = None) -> Either[dict, dict]:
    """Rules for a goal entered by the user, stricter than those for stored goals.

    Debt balances cannot exceed the original amount, every goal needs a
    future deadline and auto-contributions cannot be negative.
    """
    if not isinstance(d, dict):
        return Left({"error": "invalid_goal", "message": "Goal must be a mapping"})

    title = d.get("title")
    if not title or not isinstance(title, str) or not title.strip():
        return Left({"error": "missing_title", "message": "Goal title is required"})

    if d.get("type") == "debt":
        original = to_number(d.get("originalAmount"))
        if original <= 0:
            return Left({
                "error": "invalid_original_amount",
                "message": "Original debt amount is required",
            })
        if to_number(d.get("current")) > original:
            return Left({
                "error": "current_exceeds_original",
                "message": "Current debt cannot exceed original amount",
                "current": d.get("current"),
            })
    elif to_number(d.get("target")) <= 0:
        return Left({
            "error": "invalid_target",
            "message": "Target amount must be greater than 0",
        })

    deadline = parse_day(d.get("deadline"))
    if deadline is None:
        return Left({"error": "missing_deadline", "message": "Deadline is required"})
    if deadline <= (today or date.today()):
        return Left({
            "error": "past_deadline",
            "message": "Deadline must be in the future",
            "deadline": deadline.isoformat(),
        })

    if to_number(d.get("autoContribute")) < 0:
        return Left({
            "error": "negative_auto_contribute",
            "message": "Auto-contribution cannot be negative",
        })

    return Right(d)


def goal_from_dict(d: dict) -> Goal:
    original = d.get("originalAmount")
    return Goal(
        id=str(d["id"]),
        title=d["title"],
        type=d["type"],
        target=to_number(d.get("target")),
        current=to_number(d.get("current")),
        original_amount=to_number(original) if original else None,
        deadline=parse_day(d.get("deadline")),
        category=d.get("category") or "Other",
        priority=d.get("priority") or "medium",
        auto_contribute=to_number(d.get("autoContribute")),
        show_on_balance_card=bool(d.get("showOnBalanceCard")),
        is_active=d.get("isActive") is not False,
        completed_date=d.get("completedDate"),
        created_at=d.get("createdAt"),
        updated_at=d.get("updatedAt"),
    )


def goal_to_dict(g: Goal) -> dict:
    return {
        "id": g.id,
        "title": g.title,
        "type": g.type,
        "target": g.target,
        "current": g.current,
        "originalAmount": g.original_amount,
        "deadline": g.deadline.isoformat() if g.deadline else None,
        "category": g.category,
        "priority": g.priority,
        "autoContribute": g.auto_contribute,
        "showOnBalanceCard": g.show_on_balance_card,
        "isActive": g.is_active,
        "completedDate": g.completed_date,
        "createdAt": g.created_at,
        "updatedAt": g.updated_at,
    }


def load_goal(d: Any) -> Either[dict, Goal]:
    """Sanitize, validate and build a goal from a stored record."""
    if not isinstance(d, dict):
        return Left({"error": "invalid_goal", "message": "Goal must be a mapping"})
    result = validate_goal(sanitize_goal(d))
    if not result.is_right():
        return result
    try:
        return Right(goal_from_dict(result.get_or_else({})))
    except (KeyError, TypeError, ValueError) as e:
        return Left({"error": "invalid_goal", "message": str(e)})


# --- categories

def category_from_dict(d: dict) -> Category:
    subcategories = tuple(
        Subcategory(id=str(s.get("id", s.get("name", ""))), name=s.get("name", ""), icon=s.get("icon", ""))
        for s in (d.get("subcategories") or [])
    )
    return Category(
        id=str(d["id"]),
        name=d.get("name", ""),
        icon=d.get("icon") or "document-text-outline",
        color=d.get("color") or "#A8A8A8",
        has_subcategories=bool(d.get("hasSubcategories")),
        subcategories=subcategories,
        is_custom=bool(d.get("isCustom")),
        description=d.get("description") or "",
    )


# --- user setup and auth

def income_from_dict(d: dict) -> IncomeData:
    return IncomeData(
        income=to_number(d.get("income")),
        frequency=d.get("frequency") or "monthly",
        next_pay_date=d.get("nextPayDate"),
    )


def income_to_dict(i: IncomeData) -> dict:
    return {"income": i.income, "frequency": i.frequency, "nextPayDate": i.next_pay_date}


def user_from_dict(d: dict) -> UserAuthData:
    prefs = d.get("preferences") or {}
    return UserAuthData(
        user_id=d["userId"],
        email=d.get("email", ""),
        display_name=d.get("displayName"),
        email_verified=bool(d.get("emailVerified")),
        created_at=to_number(d.get("createdAt")),
        last_login_at=to_number(d.get("lastLoginAt")),
        preferences=UserPreferences(
            theme=prefs.get("theme", "system"),
            language=prefs.get("language", "en"),
            notifications_enabled=prefs.get("notificationsEnabled", True),
            sync_enabled=prefs.get("syncEnabled", True),
        ),
    )


def user_to_dict(u: UserAuthData) -> dict:
    return {
        "userId": u.user_id,
        "email": u.email,
        "displayName": u.display_name,
        "emailVerified": u.email_verified,
        "createdAt": u.created_at,
        "lastLoginAt": u.last_login_at,
        "preferences": {
            "theme": u.preferences.theme,
            "language": u.preferences.language,
            "notificationsEnabled": u.preferences.notifications_enabled,
            "syncEnabled": u.preferences.sync_enabled,
        },
    }
