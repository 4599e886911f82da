class BudgetSyncError(Exception):
    """Root of all errors raised by budgetsync."""


class InvalidKey(BudgetSyncError, ValueError):
    def __init__(self, key):
        super().__init__(f"Invalid month key {key!r}, expected YYYY-MM")
        self.key = key


class CategoryNotFound(BudgetSyncError, KeyError):
    def __init__(self, category_id: str, month: str = ""):
        super().__init__(f"Category with ID {category_id} does not exist in {month or 'this month'}")
        self.category_id = category_id
        self.month = month

    def __str__(self) -> str:
        return self.args[0]


class ExpenseNotFound(BudgetSyncError, KeyError):
    def __init__(self, expense_id: str, month: str = ""):
        super().__init__(f"Expense with ID {expense_id} does not exist in {month or 'this month'}")
        self.expense_id = expense_id
        self.month = month

    def __str__(self) -> str:
        return self.args[0]


class ReadOnlyViolation(BudgetSyncError, PermissionError):
    def __init__(self, operation: str, project_id: str = ""):
        target = f"project {project_id}" if project_id else "project"
        super().__init__(f"Cannot {operation}: {target} is shared read-only")
        self.operation = operation
        self.project_id = project_id


class PersistenceFailure(BudgetSyncError):
    def __init__(self, project_id: str, reason: str = ""):
        super().__init__(f"Could not persist project {project_id}: {reason}")
        self.project_id = project_id
        self.reason = reason


class MalformedRemoteData(BudgetSyncError, ValueError):
    def __init__(self, key: str, reason: str):
        super().__init__(f"Malformed data under {key!r}: {reason}")
        self.key = key
        self.reason = reason
