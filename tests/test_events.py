from budgetsync.events import (
    EXPENSE_ADDED,
    Event,
    EventBus,
    check_budget_handler,
    register_default_handlers,
)


def test_publish_without_subscribers():
    assert EventBus().publish("NOTHING", {}) == []


def test_check_budget_handler_alerts_only_when_over():
    event = Event(EXPENSE_ADDED, "2024-04-10T00:00:00", {})

    over = check_budget_handler(event, {"category_id": "c1", "category_name": "Food", "budget": 1000, "spent": 1200})
    assert over["limit"] == 1000
    assert over["over_budget"] == 200
    assert "Food" in over["alert"]

    assert check_budget_handler(event, {"category_id": "c1", "budget": 1000, "spent": 1000}) == {"spent": 1000}
    # a zero budget never alerts
    assert "alert" not in check_budget_handler(event, {"category_id": "c1", "budget": 0, "spent": 50})


def test_handler_can_unsubscribe_itself():
    bus = EventBus()
    calls = []

    def once(event, payload):
        calls.append(event.name)
        bus.unsubscribe("PING", once)
        return {}

    bus.subscribe("PING", once)
    bus.subscribe("PING", lambda event, payload: {"second": True})

    assert bus.publish("PING", {}) == [{}, {"second": True}]
    assert bus.publish("PING", {}) == [{"second": True}]
    assert calls == ["PING"]


def test_register_default_handlers():
    bus = EventBus()
    register_default_handlers(bus)
    results = bus.publish(EXPENSE_ADDED, {"category_id": "c1", "budget": 100, "spent": 150})
    assert results[0]["over_budget"] == 50
