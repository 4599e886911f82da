"""In-memory owner of one project's month buckets.

Every mutation is a single replace of one ``MonthlyData`` value computed by
:mod:`budgetsync.transforms`, so an expense change and the matching
category ``spent`` change land together or not at all. Successful mutations
publish ``DATA_CHANGED`` so the sync layer can schedule a save.
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import uuid4

from budgetsync import transforms
from budgetsync.codec import merge_project_data
from budgetsync.domain import ALL_DAYS, EMPTY_MONTH, Category, Expense, MonthlyData, ProjectData
from budgetsync.errors import InvalidKey, ReadOnlyViolation
from budgetsync.events import DATA_CHANGED, EXPENSE_ADDED, EventBus, event_bus
from budgetsync.functional import find_category, find_expense
from budgetsync.periods import is_valid_month_key, month_key

logger = logging.getLogger(__name__)

LOCAL = "local"
REMOTE = "remote"


def _new_id() -> str:
    return uuid4().hex


class MonthlyDataStore:

    def __init__(
        self,
        project_id: str = "",
        data: Optional[ProjectData] = None,
        *,
        editable: bool = True,
        current_month: Optional[str] = None,
        bus: Optional[EventBus] = None,
        id_factory: Callable[[], str] = _new_id,
        today: Callable[[], date] = date.today,
    ):
        self.project_id = project_id
        self.editable = editable
        self._bus = bus if bus is not None else event_bus
        self._new_id = id_factory
        self._today = today
        self._data: Dict[str, MonthlyData] = merge_project_data({}, data or {})
        self.current_month = current_month or month_key(today())
        self.revision = 0
        self.alerts: List[dict] = []

    # queries

    def get_month(self, key: str) -> MonthlyData:
        return self._data.get(key, EMPTY_MONTH)

    def current(self) -> MonthlyData:
        return self.get_month(self.current_month)

    def available_months(self) -> List[str]:
        return sorted(self._data)

    def snapshot(self) -> ProjectData:
        return dict(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    # cursor

    def select_month(self, key: str) -> MonthlyData:
        """Move the cursor, creating an empty bucket for a month not seen yet."""
        if not is_valid_month_key(key):
            raise InvalidKey(key)
        if key not in self._data:
            if self.editable:
                self._commit(key, EMPTY_MONTH, "select_month")
            else:
                logger.debug("Read-only view of %s has no data for %s", self.project_id, key)
        self.current_month = key
        return self.get_month(key)

    # bulk

    def set_month(self, key: str, data: MonthlyData) -> bool:
        self._require_edit("set month data")
        if not is_valid_month_key(key):
            logger.warning("Ignoring set_month for %s: %s", self.project_id, InvalidKey(key))
            return False
        self._commit(key, transforms.recompute_spent(data), "set_month")
        return True

    def apply_remote(self, remote: ProjectData) -> bool:
        """Merge a remote snapshot (remote wins per month). Returns True if anything changed."""
        merged = merge_project_data(self._data, remote)
        if merged == self._data:
            return False
        self._data = merged
        self.revision += 1
        self._publish(DATA_CHANGED, {"month": None, "operation": "apply_remote", "origin": REMOTE})
        return True

    def replace_all(self, data: ProjectData) -> None:
        """Install a loaded state wholesale without scheduling a save."""
        self._data = merge_project_data({}, data)
        self.revision += 1

    # expense commands

    def add_expense(
        self,
        month: str,
        category_id: str,
        amount: int,
        description: str = "",
        expense_date: Optional[str] = None,
    ) -> Expense:
        self._require_edit("add an expense")
        bucket = self._bucket(month)
        expense = Expense(
            id=self._new_id(),
            category_id=category_id,
            amount=amount,
            description=description,
            date=expense_date or self._today().isoformat(),
        )
        updated = transforms.add_expense(bucket, expense, month)
        self._commit(month, updated, "add_expense")

        totals = find_category(updated.categories, category_id).map(
            lambda c: {"category_name": c.name, "budget": c.budget, "spent": c.spent}
        )
        results = self._publish(EXPENSE_ADDED, {
            "month": month,
            "expense_id": expense.id,
            "amount": amount,
            "category_id": category_id,
            **totals.get_or_else({}),
        })
        for result in results:
            if isinstance(result, dict) and result.get("alert"):
                logger.info(result["alert"])
                self.alerts.append(result)
        return expense

    def update_expense(self, month: str, expense_id: str, updates: Mapping[str, Any]) -> Expense:
        self._require_edit("update an expense")
        updated = transforms.update_expense(self._bucket(month), expense_id, updates, month)
        self._commit(month, updated, "update_expense")
        return find_expense(updated.expenses, expense_id).get_or_else(None)

    def delete_expense(self, month: str, expense_id: str) -> bool:
        """Remove an expense. Deleting an absent id is a no-op and returns False."""
        self._require_edit("delete an expense")
        bucket = self._bucket(month)
        updated = transforms.delete_expense(bucket, expense_id)
        if updated is bucket:
            return False
        self._commit(month, updated, "delete_expense")
        return True

    # category commands

    def add_category(
        self,
        month: str,
        name: str,
        budget: int,
        icon: str = "",
        day_calculation_type: str = ALL_DAYS,
    ) -> Category:
        self._require_edit("add a category")
        category = Category(
            id=self._new_id(),
            name=name,
            budget=budget,
            spent=0,
            icon=icon,
            day_calculation_type=day_calculation_type,
        )
        self._commit(month, transforms.add_category(self._bucket(month), category), "add_category")
        return category

    def update_category(self, month: str, category_id: str, updates: Mapping[str, Any]) -> Category:
        self._require_edit("update a category")
        updated = transforms.update_category(self._bucket(month), category_id, updates, month)
        self._commit(month, updated, "update_category")
        return find_category(updated.categories, category_id).get_or_else(None)

    def delete_category(self, month: str, category_id: str) -> None:
        """Delete a category together with every expense filed under it."""
        self._require_edit("delete a category")
        updated = transforms.delete_category(self._bucket(month), category_id, month)
        self._commit(month, updated, "delete_category")

    # internals

    def _require_edit(self, operation: str) -> None:
        if not self.editable:
            err = ReadOnlyViolation(operation, self.project_id)
            logger.warning("%s", err)
            raise err

    def _bucket(self, month: str) -> MonthlyData:
        if not is_valid_month_key(month):
            raise InvalidKey(month)
        return self.get_month(month)

    def _commit(self, key: str, data: MonthlyData, operation: str) -> None:
        self._data[key] = data
        self._data = dict(sorted(self._data.items()))
        self.revision += 1
        self._publish(DATA_CHANGED, {"month": key, "operation": operation, "origin": LOCAL})

    def _publish(self, name: str, payload: dict) -> List[dict]:
        return self._bus.publish(name, {"project_id": self.project_id, "store": self, **payload})
