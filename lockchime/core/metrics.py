from __future__ import annotations

import threading
from typing import Dict


class MetricsStore:
    """Thread-safe in-memory counters describing this process's request handling."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {
            "events_received": 0,
            "events_recorded": 0,
            "events_sampled_out": 0,
            "events_rejected": 0,
            "storage_failures": 0,
        }

    def record_received(self) -> None:
        with self._lock:
            self._counters["events_received"] += 1

    def record_recorded(self) -> None:
        with self._lock:
            self._counters["events_recorded"] += 1

    def record_sampled_out(self) -> None:
        with self._lock:
            self._counters["events_sampled_out"] += 1

    def record_rejected(self) -> None:
        with self._lock:
            self._counters["events_rejected"] += 1

    def record_storage_failure(self) -> None:
        with self._lock:
            self._counters["storage_failures"] += 1

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)


metrics = MetricsStore()
