"""
Keyword rules for classifying transactions by description.

A rule table is an ordered list of ``KeywordRule(pattern, target)``. When a
transaction description contains ``pattern`` the rule points at any
subcategory whose name contains ``target``. Subcategories are tried in the
order the category lists them; the first one named in the description, or
hit by any rule, wins.

Rule files are JSON lists::

    [
        {"pattern": "uber", "target": "takeout"},
        {"pattern": "coles", "target": "grocery"}
    ]
"""
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from trend.domain import Subcategory

GENERAL_SUBCATEGORY = "General"


@dataclass(frozen=True)
class KeywordRule:
    """Description substring -> subcategory name fragment."""

    pattern: str
    target: str

    def __post_init__(self):
        # matching is case-insensitive on both sides
        object.__setattr__(self, "pattern", self.pattern.lower())
        object.__setattr__(self, "target", self.target.lower())

    def matches(self, description: str, subcategory_name: str) -> bool:
        return self.target in subcategory_name and self.pattern in description


DEFAULT_SUBCATEGORY_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule("uber", "takeout"),
    KeywordRule("doordash", "takeout"),
    KeywordRule("delivery", "takeout"),
    KeywordRule("woolworth", "grocery"),
    KeywordRule("coles", "grocery"),
    KeywordRule("supermarket", "grocery"),
    KeywordRule("starbucks", "coffee"),
    KeywordRule("cafe", "coffee"),
    KeywordRule("gas", "fuel"),
    KeywordRule("petrol", "fuel"),
    KeywordRule("shell", "fuel"),
    KeywordRule("bp", "fuel"),
    KeywordRule("chemist", "pharmacy"),
    KeywordRule("medication", "pharmacy"),
    KeywordRule("netflix", "subscription"),
    KeywordRule("spotify", "subscription"),
    KeywordRule("monthly", "subscription"),
)

DEFAULT_TAKEOUT_KEYWORDS: Tuple[str, ...] = (
    "uber eats",
    "ubereats",
    "uber",
    "doordash",
    "dash",
    "menulog",
    "deliveroo",
    "grubhub",
    "delivery",
    "takeaway",
    "takeout",
    "food delivery",
    "eats",
)


# category names that belong to a standard category id
CATEGORY_ALIASES = {
    "food": "food",
    "restaurant": "food",
    "dining": "food",
    "groceries": "food",
    "transport": "transport",
    "transportation": "transport",
    "gas": "transport",
    "fuel": "transport",
    "car": "transport",
    "shopping": "shopping",
    "retail": "shopping",
    "clothes": "shopping",
    "clothing": "shopping",
    "entertainment": "entertainment",
    "movies": "entertainment",
    "gaming": "entertainment",
    "health": "health",
    "medical": "health",
    "pharmacy": "health",
    "home": "bills",
    "utilities": "bills",
    "household": "bills",
}


def category_alias(name: str) -> Optional[str]:
    return CATEGORY_ALIASES.get((name or "").strip().lower())


class RuleParseError(Exception):
    """Error reading a rule file."""


def rules_from_pairs(pairs: Iterable[Tuple[str, str]]) -> Tuple[KeywordRule, ...]:
    return tuple(KeywordRule(pattern, target) for pattern, target in pairs)


def load_rules(path: Path) -> Tuple[KeywordRule, ...]:
    """Load an ordered rule table from a JSON file."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise RuleParseError(f"cannot read rules from {path}: {e}") from e

    if not isinstance(data, list):
        raise RuleParseError(f"{path}: expected a list of rules")

    rules: List[KeywordRule] = []
    for i, item in enumerate(data, 1):
        if not isinstance(item, dict) or not item.get("pattern") or not item.get("target"):
            raise RuleParseError(f"{path}: rule {i} needs 'pattern' and 'target'")
        rules.append(KeywordRule(str(item["pattern"]), str(item["target"])))
    return tuple(rules)


def match_subcategory(
    description: str,
    subcategories: Sequence[Subcategory],
    rules: Sequence[KeywordRule] = DEFAULT_SUBCATEGORY_RULES,
) -> Optional[Subcategory]:
    """First subcategory named in the description or pointed at by a rule."""
    desc = (description or "").lower()
    for sub in subcategories:
        name = sub.name.lower()
        if name and name in desc:
            return sub
        if any(rule.matches(desc, name) for rule in rules):
            return sub
    return None


def subcategory_name(
    description: str,
    subcategories: Sequence[Subcategory],
    rules: Sequence[KeywordRule] = DEFAULT_SUBCATEGORY_RULES,
) -> str:
    sub = match_subcategory(description, subcategories, rules)
    return sub.name if sub is not None else GENERAL_SUBCATEGORY


def is_takeout(description: str, keywords: Sequence[str] = DEFAULT_TAKEOUT_KEYWORDS) -> bool:
    if not description:
        return False
    desc = description.lower()
    return any(keyword in desc for keyword in keywords)
