import pytest

from budgetsync.domain import Category, MonthlyData, Project
from budgetsync.errors import ReadOnlyViolation
from budgetsync.events import EventBus
from budgetsync.sharing import (
    NO_ACCESS,
    Access,
    find_shared_project,
    generate_share_token,
    open_shared_store,
    resolve_access,
    share_project,
    share_url,
    unshare_project,
)


def make_project():
    return Project("p1", "Household", "user_1", created_at="2024-01-01", last_modified="2024-01-01")


def test_token_is_long_and_random():
    tokens = {generate_share_token() for _ in range(20)}
    assert len(tokens) == 20
    assert all(len(t) >= 16 for t in tokens)
    assert len(generate_share_token(1)) >= 16


def test_share_url():
    assert share_url("https://example.org/shared/", "abc") == "https://example.org/shared/abc"


def test_resolve_access():
    project = make_project()
    assert resolve_access(project, "t") == NO_ACCESS

    read_only = share_project(project, "token-123", allow_edit=False, now="2024-02-01")
    assert read_only.shared_at == "2024-02-01"
    assert resolve_access(read_only, "token-123") == Access(True, False)
    assert resolve_access(read_only, "token-124") == NO_ACCESS
    assert resolve_access(read_only, None) == NO_ACCESS

    editable = share_project(project, "token-123", allow_edit=True)
    assert resolve_access(editable, "token-123") == Access(True, True)


def test_unshare_revokes_token():
    shared = share_project(make_project(), "tok", allow_edit=True)
    revoked = unshare_project(shared, now="2024-03-01")
    assert revoked.share_token is None
    assert revoked.last_modified == "2024-03-01"
    assert resolve_access(revoked, "tok") == NO_ACCESS


def test_find_shared_project():
    shared = share_project(make_project(), "tok", allow_edit=False)
    other = Project("p2", "Other", "user_2")
    assert find_shared_project([other, shared], "tok") is shared
    assert find_shared_project([other, shared], "nope") is None


def test_open_shared_store_read_only():
    data = {"2024-04": MonthlyData((Category("c1", "Food", 1000),), ())}
    shared = share_project(make_project(), "tok", allow_edit=False)

    assert open_shared_store(shared, "wrong", data) is None

    store = open_shared_store(shared, "tok", data, bus=EventBus())
    assert store.get_month("2024-04").categories[0].name == "Food"
    with pytest.raises(ReadOnlyViolation):
        store.add_expense("2024-04", "c1", 100)


def test_open_shared_store_editable():
    data = {"2024-04": MonthlyData((Category("c1", "Food", 1000),), ())}
    shared = share_project(make_project(), "tok", allow_edit=True)
    store = open_shared_store(shared, "tok", data, bus=EventBus())
    store.add_expense("2024-04", "c1", 100, expense_date="2024-04-02")
    assert store.get_month("2024-04").categories[0].spent == 100
