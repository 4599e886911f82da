from abc import ABC, abstractmethod
from typing import Callable, Generic, Iterable, TypeVar

from budgetsync.domain import Category, Expense

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


class Maybe(Generic[T], ABC):
    """Result of looking something up by id in a month bucket."""

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def or_raise(self, error: Exception) -> T:
        pass

    @abstractmethod
    def is_none(self) -> bool:
        pass

    def is_some(self) -> bool:
        return not self.is_none()


class Some(Maybe[T]):
    __slots__ = ("value",)

    def __init__(self, value: T):
        self.value = value

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Some(f(self.value))

    def get_or_else(self, default: T) -> T:
        return self.value

    def or_raise(self, error: Exception) -> T:
        return self.value

    def is_none(self) -> bool:
        return False

    def __eq__(self, other) -> bool:
        return isinstance(other, Some) and self.value == other.value

    def __repr__(self) -> str:
        return f"Some({self.value!r})"


class Nothing(Maybe[T]):
    __slots__ = ()

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return self

    def get_or_else(self, default: T) -> T:
        return default

    def or_raise(self, error: Exception) -> T:
        raise error

    def is_none(self) -> bool:
        return True

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)

    def __repr__(self) -> str:
        return "Nothing()"


class Either(Generic[E, T], ABC):
    """A parse outcome: ``Right(value)`` or ``Left(error details)``."""

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        pass

    @abstractmethod
    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def get_error(self) -> E:
        pass

    @abstractmethod
    def is_left(self) -> bool:
        pass

    def is_right(self) -> bool:
        return not self.is_left()


class Right(Either[E, T]):
    __slots__ = ("value",)

    def __init__(self, value: T):
        self.value = value

    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        return Right(f(self.value))

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return f(self.value)

    def get_or_else(self, default: T) -> T:
        return self.value

    def get_error(self) -> E:
        raise ValueError(f"{self!r} carries no error")

    def is_left(self) -> bool:
        return False

    def __eq__(self, other) -> bool:
        return isinstance(other, Right) and self.value == other.value

    def __repr__(self) -> str:
        return f"Right({self.value!r})"


class Left(Either[E, T]):
    __slots__ = ("error",)

    def __init__(self, error: E):
        self.error = error

    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        return self

    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        return self

    def get_or_else(self, default: T) -> T:
        return default

    def get_error(self) -> E:
        return self.error

    def is_left(self) -> bool:
        return True

    def __eq__(self, other) -> bool:
        return isinstance(other, Left) and self.error == other.error

    def __repr__(self) -> str:
        return f"Left({self.error!r})"


def _first(items: Iterable, item_id: str) -> Maybe:
    return next((Some(item) for item in items if item.id == item_id), Nothing())


def find_category(cats: Iterable[Category], cat_id: str) -> Maybe[Category]:
    return _first(cats, cat_id)


def find_expense(expenses: Iterable[Expense], expense_id: str) -> Maybe[Expense]:
    return _first(expenses, expense_id)


def collect_rights(results: Iterable[Either[E, T]]) -> tuple[list[T], list[E]]:
    """Split tagged results into (values, errors) without raising."""
    values: list[T] = []
    errors: list[E] = []
    for r in results:
        if r.is_right():
            values.append(r.get_or_else(None))
        else:
            errors.append(r.get_error())
    return values, errors


def pipe(x, *funcs):
    """pipe(x, f, g, h) == h(g(f(x)))"""
    res = x
    for f in funcs:
        res = f(res)
    return res
