import pytest

from budgetsync.domain import Category, Expense
from budgetsync.errors import CategoryNotFound
from budgetsync.functional import Left, Nothing, Right, Some, collect_rights, find_category, find_expense, pipe


def test_maybe():
    assert Some(2).map(lambda x: x * 2) == Some(4)
    assert Nothing().map(lambda x: x * 2) == Nothing()
    assert Some(2).is_some() and not Some(2).is_none()
    assert Nothing().get_or_else(7) == 7
    assert Some(0).get_or_else(7) == 0


def test_or_raise():
    assert Some("c1").or_raise(CategoryNotFound("c1")) == "c1"
    with pytest.raises(CategoryNotFound, match="c9"):
        Nothing().or_raise(CategoryNotFound("c9", "2024-04"))


def test_either():
    assert Right(2).map(lambda x: x + 1) == Right(3)
    assert Left("bad").map(lambda x: x + 1) == Left("bad")
    assert Right(2).bind(lambda x: Left(f"no {x}")).get_error() == "no 2"
    assert Left("bad").get_or_else(0) == 0
    assert Right(1).is_right() and Left("x").is_left()
    with pytest.raises(ValueError):
        Right(1).get_error()


def test_find_helpers():
    cats = (Category("c1", "Food", 100), Category("c2", "Rent", 100))
    assert find_category(cats, "c2").map(lambda c: c.name) == Some("Rent")
    assert find_category(cats, "c3").is_none()

    exps = (Expense("e1", "c1", 5, "", "2024-01-01"),)
    assert find_expense(exps, "e1").is_some()
    assert find_expense(exps, "e2") == Nothing()


def test_collect_rights():
    values, errors = collect_rights([Right(1), Left({"error": "x"}), Right(2)])
    assert values == [1, 2]
    assert errors == [{"error": "x"}]


def test_pipe():
    assert pipe(3, lambda x: x + 1, lambda x: x * 10, str) == "40"
    assert pipe("same") == "same"
