"""
In-process request performance recorder.

The request logging middleware reports every response here; the admin
metrics endpoint reads the aggregate.
"""

import threading
from collections import Counter, deque
from datetime import datetime, timezone

SLOW_REQUEST_THRESHOLD_MS = 1000.0
SLOW_REQUEST_HISTORY = 20


class RequestMetrics:
    """Counts, average duration, recent slow requests and error status codes."""

    def __init__(self, slow_threshold_ms: float = SLOW_REQUEST_THRESHOLD_MS):
        self.slow_threshold_ms = slow_threshold_ms
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        self.total_requests = 0
        self.total_duration_ms = 0.0
        self.slow_requests: deque = deque(maxlen=SLOW_REQUEST_HISTORY)
        self.errors_by_status: Counter = Counter()

    def record(self, method: str, path: str, status_code: int, duration_ms: float) -> None:
        with self._lock:
            self.total_requests += 1
            self.total_duration_ms += duration_ms
            if duration_ms > self.slow_threshold_ms:
                self.slow_requests.append(
                    {
                        "method": method,
                        "path": path,
                        "status_code": status_code,
                        "duration_ms": round(duration_ms, 2),
                        "at": datetime.now(timezone.utc).isoformat(),
                    }
                )
            if status_code >= 400:
                self.errors_by_status[str(status_code)] += 1

    def snapshot(self) -> dict:
        with self._lock:
            average = self.total_duration_ms / self.total_requests if self.total_requests else 0.0
            return {
                "total_requests": self.total_requests,
                "average_duration_ms": round(average, 2),
                "slow_requests": list(self.slow_requests),
                "error_distribution": dict(self.errors_by_status),
            }


request_metrics = RequestMetrics()
