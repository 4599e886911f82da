from typing import Callable, Dict, List, NamedTuple
from datetime import datetime

__all__ = [
    'event_bus', 'Event', 'EventBus',
    'DATA_CHANGED', 'EXPENSE_ADDED', 'BUDGET_ALERT', 'SYNC_STATUS_CHANGED',
    'check_budget_handler', 'register_default_handlers',
]


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[Event, dict], dict]]] = {}

    def subscribe(self, name: str, handler: Callable[[Event, dict], dict]) -> None:
        if name not in self._subscribers:
            self._subscribers[name] = []
        self._subscribers[name].append(handler)

    def publish(self, name: str, payload: dict) -> List[dict]:
        if name not in self._subscribers:
            return []

        event = Event(
            name=name,
            ts=datetime.now().isoformat(),
            payload=payload
        )

        results = []
        # copy so a handler may unsubscribe itself
        for handler in list(self._subscribers[name]):
            result = handler(event, payload)
            results.append(result)
        return results

    def unsubscribe(self, name: str, handler: Callable[[Event, dict], dict]) -> None:
        if name in self._subscribers:
            if handler in self._subscribers[name]:
                self._subscribers[name].remove(handler)


DATA_CHANGED = "DATA_CHANGED"
EXPENSE_ADDED = "EXPENSE_ADDED"
BUDGET_ALERT = "BUDGET_ALERT"
SYNC_STATUS_CHANGED = "SYNC_STATUS_CHANGED"

event_bus = EventBus()


def check_budget_handler(event: Event, payload: dict) -> dict:
    category_id = payload.get("category_id", "")
    budget = payload.get("budget", 0)
    spent = payload.get("spent", 0)

    if budget > 0 and spent > budget:
        return {
            "alert": f"Budget exceeded for category {payload.get('category_name') or category_id}: {spent:,} / {budget:,} JPY",
            "category_id": category_id,
            "spent": spent,
            "limit": budget,
            "over_budget": spent - budget,
        }
    return {"spent": spent}


def register_default_handlers(bus: EventBus = event_bus) -> None:
    bus.subscribe(EXPENSE_ADDED, check_budget_handler)
