import json
import logging

from backoffice.observability.health import check_database_health
from backoffice.observability.logging_config import JsonFormatter
from backoffice.observability.metrics import (
    MAX_EVENTS,
    counter_total,
    get_metrics_snapshot,
    increment_counter,
    observe_latency,
    record_event,
    reset_metrics,
    set_gauge,
)


def test_metrics_snapshot_accumulates_counts():
    reset_metrics()
    increment_counter("orders_created_total")
    increment_counter("orders_created_total", amount=2, labels={"role": "salesman"})
    set_gauge("open_orders", 5)
    observe_latency("order_create_latency_ms", 100, labels={"route": "/api/orders"})
    observe_latency("order_create_latency_ms", 50, labels={"route": "/api/orders"})

    snapshot = get_metrics_snapshot()
    counters = snapshot["counters"]["orders_created_total"]
    assert len(counters) == 2
    assert counter_total("orders_created_total") == 3

    gauges = snapshot["gauges"]["open_orders"]
    assert gauges[0]["value"] == 5

    hist = snapshot["histograms"]["order_create_latency_ms"][0]["stats"]
    assert hist["count"] == 2
    assert hist["max"] == 100
    assert hist["avg"] == 75


def test_event_log_is_bounded():
    reset_metrics()
    for index in range(MAX_EVENTS + 10):
        record_event("stock_adjusted", {"index": index})

    events = get_metrics_snapshot()["events"]
    assert len(events) == MAX_EVENTS
    assert events[-1]["payload"] == {"index": MAX_EVENTS + 9}


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("backoffice.test", logging.INFO, __file__, 1, "Order %s created", ("ORD-1",), None)
    record.order_id = "abc"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "Order ORD-1 created"
    assert payload["level"] == "INFO"
    assert payload["extra"]["order_id"] == "abc"


def test_database_health_sets_gauge():
    reset_metrics()

    report = check_database_health()

    assert report["status"] == "UP"
    assert get_metrics_snapshot()["gauges"]["database_up"][0]["value"] == 1
