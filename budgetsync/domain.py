from dataclasses import asdict, dataclass
from typing import Dict, Optional, Tuple

WEEKDAYS = "weekdays"
WEEKENDS = "weekends"
ALL_DAYS = "all"
DAY_CALCULATION_TYPES = (WEEKDAYS, WEEKENDS, ALL_DAYS)


@dataclass(frozen=True)
class Expense:
    id: str
    category_id: str
    amount: int        # whole yen, >= 0
    description: str
    date: str          # "YYYY-MM-DD"


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    budget: int
    spent: int = 0     # sum of amounts of expenses pointing here
    icon: str = ""
    day_calculation_type: str = ALL_DAYS


@dataclass(frozen=True)
class MonthlyData:
    categories: Tuple[Category, ...] = ()
    expenses: Tuple[Expense, ...] = ()


# month-key ("YYYY-MM") -> bucket
ProjectData = Dict[str, MonthlyData]


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    user_id: str
    description: str = ""
    created_at: str = ""
    last_modified: str = ""
    is_shared: bool = False
    share_token: Optional[str] = None
    allow_edit: bool = False
    shared_at: Optional[str] = None


EMPTY_MONTH = MonthlyData()

_EXPENSE_FIELDS = {
    "id": "id",
    "category_id": "categoryId",
    "amount": "amount",
    "description": "description",
    "date": "date",
}
_CATEGORY_FIELDS = {
    "id": "id",
    "name": "name",
    "budget": "budget",
    "spent": "spent",
    "icon": "icon",
    "day_calculation_type": "dayCalculationType",
}
_PROJECT_FIELDS = {
    "id": "id",
    "name": "name",
    "user_id": "userId",
    "description": "description",
    "created_at": "createdAt",
    "last_modified": "lastModified",
    "is_shared": "isShared",
    "share_token": "shareToken",
    "allow_edit": "allowEdit",
    "shared_at": "sharedAt",
}


def _rename(values: dict, mapping: Dict[str, str]) -> dict:
    return {mapping[k]: v for k, v in values.items()}


def expense_to_dict(e: Expense) -> dict:
    return _rename(asdict(e), _EXPENSE_FIELDS)


def category_to_dict(c: Category) -> dict:
    return _rename(asdict(c), _CATEGORY_FIELDS)


def month_to_dict(m: MonthlyData) -> dict:
    return {
        "categories": [category_to_dict(c) for c in m.categories],
        "expenses": [expense_to_dict(e) for e in m.expenses],
    }


def project_data_to_dict(data: ProjectData) -> dict:
    return {key: month_to_dict(month) for key, month in data.items()}


def project_to_dict(p: Project) -> dict:
    return _rename(asdict(p), _PROJECT_FIELDS)


def project_from_dict(raw: dict, user_id: str = "", now: str = "") -> Project:
    """Build a Project from a stored document, filling gaps with defaults."""
    return Project(
        id=str(raw.get("id") or ""),
        name=raw.get("name") or "",
        user_id=raw.get("userId") or user_id,
        description=raw.get("description") or "",
        created_at=raw.get("createdAt") or now,
        last_modified=raw.get("lastModified") or now,
        is_shared=bool(raw.get("isShared", False)),
        share_token=raw.get("shareToken") or None,
        allow_edit=bool(raw.get("allowEdit", False)),
        shared_at=raw.get("sharedAt") or None,
    )
