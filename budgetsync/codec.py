"""Parsing, validation and merging of untyped project payloads.

Remote snapshots and local-cache blobs arrive as plain JSON objects. Each
month bucket is parsed into a ``MonthlyData`` or rejected with a ``Left``
describing why, so one bad bucket never aborts the rest of the load.
"""

import json
import logging
from typing import Any, Dict, Mapping, Optional

from budgetsync.domain import (
    ALL_DAYS,
    DAY_CALCULATION_TYPES,
    Category,
    Expense,
    MonthlyData,
    ProjectData,
    project_data_to_dict,
)
from budgetsync.errors import InvalidKey, MalformedRemoteData
from budgetsync.functional import Either, Left, Right, collect_rights
from budgetsync.periods import is_valid_month_key
from budgetsync.transforms import recompute_spent

logger = logging.getLogger(__name__)

# document-level fields written by the remote store next to the month buckets
METADATA_KEYS = frozenset({"lastUpdated"})


def _money(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and value >= 0:
        return value
    return None


def _text(value: Any) -> Optional[str]:
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return str(value)
    return None


def parse_expense(raw: Any) -> Either[dict, Expense]:
    if not isinstance(raw, Mapping):
        return Left({"error": "expense_not_object", "value": raw})
    exp_id, cat_id = _text(raw.get("id")), _text(raw.get("categoryId"))
    amount = _money(raw.get("amount"))
    if not exp_id or not cat_id or amount is None or not isinstance(raw.get("date"), str):
        return Left({"error": "expense_invalid", "value": dict(raw)})
    return Right(Expense(
        id=exp_id,
        category_id=cat_id,
        amount=amount,
        description=str(raw.get("description") or ""),
        date=raw["date"],
    ))


def parse_category(raw: Any) -> Either[dict, Category]:
    if not isinstance(raw, Mapping):
        return Left({"error": "category_not_object", "value": raw})
    cat_id, name = _text(raw.get("id")), raw.get("name")
    budget = _money(raw.get("budget"))
    if not cat_id or not isinstance(name, str) or budget is None:
        return Left({"error": "category_invalid", "value": dict(raw)})
    day_type = raw.get("dayCalculationType") or ALL_DAYS
    if day_type not in DAY_CALCULATION_TYPES:
        return Left({"error": "category_day_type", "value": day_type})
    return Right(Category(
        id=cat_id,
        name=name,
        budget=budget,
        spent=0,
        icon=str(raw.get("icon") or ""),
        day_calculation_type=day_type,
    ))


def _unique(items, kind: str) -> Either[dict, tuple]:
    seen = set()
    for item in items:
        if item.id in seen:
            return Left({"error": f"duplicate_{kind}_id", "id": item.id})
        seen.add(item.id)
    return Right(tuple(items))


def parse_month_data(raw: Any) -> Either[dict, MonthlyData]:
    """Strictly parse one month bucket; spent is rebuilt from the expenses."""
    if not isinstance(raw, Mapping):
        return Left({"error": "month_not_object"})
    raw_cats, raw_exps = raw.get("categories"), raw.get("expenses")
    if not isinstance(raw_cats, list) or not isinstance(raw_exps, list):
        return Left({"error": "missing_arrays", "message": "categories and expenses must both be arrays"})

    cats, cat_errors = collect_rights(parse_category(c) for c in raw_cats)
    exps, exp_errors = collect_rights(parse_expense(e) for e in raw_exps)
    if cat_errors or exp_errors:
        return Left({"error": "invalid_entries", "details": cat_errors + exp_errors})

    return _unique(cats, "category").bind(
        lambda categories: _unique(exps, "expense").map(
            lambda expenses: recompute_spent(MonthlyData(categories, expenses))
        )
    )


def parse_project_data(raw: Any, source: str = "payload") -> ProjectData:
    """Keep only well-formed ``YYYY-MM`` buckets; everything else is logged and dropped."""
    if not isinstance(raw, Mapping):
        if raw is not None:
            logger.warning("Ignoring %s: expected an object, got %s", source, type(raw).__name__)
        return {}
    result: Dict[str, MonthlyData] = {}
    for key, value in raw.items():
        if key in METADATA_KEYS:
            continue
        if not is_valid_month_key(key):
            logger.warning("Dropping from %s: %s", source, InvalidKey(key))
            continue
        parsed = parse_month_data(value)
        if parsed.is_left():
            logger.warning("Dropping from %s: %s", source, MalformedRemoteData(key, str(parsed.get_error())))
            continue
        result[key] = parsed.get_or_else(None)
    return result


def merge_project_data(local: ProjectData, remote: ProjectData) -> ProjectData:
    """Last-write-wins per month bucket: a remote bucket replaces the local one whole.

    Local-only buckets are kept. Concurrent edits to the same month on two
    devices can therefore lose the older device's changes.
    """
    merged = {k: v for k, v in local.items() if is_valid_month_key(k)}
    for key, month in remote.items():
        if is_valid_month_key(key):
            merged[key] = month
    return dict(sorted(merged.items()))


def serialize_project_data(data: ProjectData) -> str:
    """Canonical JSON used both for storage and for content-equality checks."""
    return json.dumps(
        project_data_to_dict(dict(sorted(data.items()))),
        ensure_ascii=False,
        sort_keys=True,
        separators=(",", ":"),
    )


def deserialize_project_data(text: Optional[str], source: str = "local cache") -> ProjectData:
    if not text:
        return {}
    try:
        raw = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning("Could not decode %s: %s", source, e)
        return {}
    return parse_project_data(raw, source)
