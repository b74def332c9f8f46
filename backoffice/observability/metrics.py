"""In-process metrics: labelled counters, gauges, latency histograms and a
bounded log of business events, exposed as a JSON snapshot."""
from __future__ import annotations

import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Tuple

from backoffice.config import Config

LabelSet = Tuple[Tuple[str, str], ...]
MetricKey = Tuple[str, LabelSet]

MAX_EVENTS = 200


def _label_set(labels: Optional[Dict[str, Any]]) -> LabelSet:
    if not labels:
        return ()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


@dataclass
class Histogram:
    count: int = 0
    total: float = 0.0
    min_value: float = field(default=float("inf"))
    max_value: float = field(default=float("-inf"))

    def observe(self, value: float) -> None:
        self.count += 1
        self.total += value
        self.min_value = min(self.min_value, value)
        self.max_value = max(self.max_value, value)

    def snapshot(self) -> Dict[str, Any]:
        if not self.count:
            return {"count": 0, "avg": 0.0, "min": None, "max": None}
        return {
            "count": self.count,
            "avg": round(self.total / self.count, 3),
            "min": self.min_value,
            "max": self.max_value,
        }


_lock = threading.Lock()
_counters: Dict[MetricKey, float] = defaultdict(float)
_gauges: Dict[MetricKey, float] = {}
_histograms: Dict[MetricKey, Histogram] = {}
_events: Deque[Dict[str, Any]] = deque(maxlen=MAX_EVENTS)


def increment_counter(name: str, amount: float = 1.0, labels: Optional[Dict[str, Any]] = None) -> None:
    if not Config.OBSERVABILITY_ENABLED:
        return
    with _lock:
        _counters[(name, _label_set(labels))] += amount


def set_gauge(name: str, value: float, labels: Optional[Dict[str, Any]] = None) -> None:
    if not Config.OBSERVABILITY_ENABLED:
        return
    with _lock:
        _gauges[(name, _label_set(labels))] = value


def observe_latency(name: str, value: float, labels: Optional[Dict[str, Any]] = None) -> None:
    if not Config.OBSERVABILITY_ENABLED:
        return
    with _lock:
        _histograms.setdefault((name, _label_set(labels)), Histogram()).observe(value)


def record_event(name: str, payload: Dict[str, Any]) -> None:
    if not Config.OBSERVABILITY_ENABLED:
        return
    with _lock:
        _events.append({"name": name, "timestamp": time.time(), "payload": payload})


def _group(items, render) -> Dict[str, List[Dict[str, Any]]]:
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for (name, labels), value in items:
        grouped.setdefault(name, []).append({"labels": dict(labels), **render(value)})
    return grouped


def get_metrics_snapshot() -> Dict[str, Any]:
    with _lock:
        return {
            "counters": _group(_counters.items(), lambda v: {"value": v}),
            "gauges": _group(_gauges.items(), lambda v: {"value": v}),
            "histograms": _group(_histograms.items(), lambda h: {"stats": h.snapshot()}),
            "events": list(_events),
        }


def counter_total(name: str) -> float:
    """Sum a counter across all of its label sets."""
    with _lock:
        return sum(value for (metric, _), value in _counters.items() if metric == name)


def reset_metrics() -> None:
    """Testing helper."""
    with _lock:
        _counters.clear()
        _gauges.clear()
        _histograms.clear()
        _events.clear()
