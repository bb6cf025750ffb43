from abc import ABC, abstractmethod
from typing import TypeVar, Generic, Callable, Iterable

from trend.domain import Category, Transaction, RECURRENCES, INCOME, EXPENSE

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


class Maybe(Generic[T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_some(self) -> bool:
        pass


class Some(Maybe[T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Some(f(self._value))

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_some(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Some({self._value})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Some) and self._value == other._value


class Nothing(Maybe[T]):

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Nothing()

    def get_or_else(self, default: T) -> T:
        return default

    def is_some(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Nothing()"

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)


class Either(Generic[E, T], ABC):

    @abstractmethod
    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_right(self) -> bool:
        pass

    @abstractmethod
    def get_error(self) -> E:
        pass


class Right(Either[E, T]):

    def __init__(self, value: T):
        self._value = value

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return f(self._value)

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_right(self) -> bool:
        return True

    def get_error(self) -> E:
        raise ValueError("Cannot get error from Right")

    def __repr__(self) -> str:
        return f"Right({self._value})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Right) and self._value == other._value


class Left(Either[E, T]):

    def __init__(self, error: E):
        self._error = error

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return Left(self._error)

    def get_or_else(self, default: T) -> T:
        return default

    def is_right(self) -> bool:
        return False

    def get_error(self) -> E:
        return self._error

    def __repr__(self) -> str:
        return f"Left({self._error})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Left) and self._error == other._error


def safe_category(cats: Iterable[Category], key: str) -> Maybe[Category]:
    """Look a category up by id, then by case-insensitive name."""
    cats = tuple(cats)
    for cat in cats:
        if cat.id == key:
            return Some(cat)
    lowered = (key or "").lower()
    for cat in cats:
        if cat.name.lower() == lowered:
            return Some(cat)
    return Nothing()


def validate_transaction(t: Transaction) -> Either[dict, Transaction]:
    if not t.id:
        return Left({
            "error": "missing_id",
            "message": "Transaction id is required",
        })

    if t.recurrence not in RECURRENCES:
        return Left({
            "error": "invalid_recurrence",
            "message": f"Unknown recurrence {t.recurrence}",
            "recurrence": t.recurrence,
        })

    if t.type not in (INCOME, EXPENSE):
        return Left({
            "error": "invalid_type",
            "message": f"Transaction type must be {INCOME} or {EXPENSE}",
            "type": t.type,
        })

    if t.amount == 0:
        return Left({
            "error": "zero_amount",
            "message": "Transaction amount cannot be zero",
            "amount": t.amount,
        })

    return Right(t)
