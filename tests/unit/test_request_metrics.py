"""
Unit tests for the in-process request metrics recorder.
"""

from services.request_metrics import RequestMetrics


def test_empty_snapshot():
    assert RequestMetrics().snapshot() == {
        "total_requests": 0,
        "average_duration_ms": 0.0,
        "slow_requests": [],
        "error_distribution": {},
    }


def test_average_slow_requests_and_errors():
    metrics = RequestMetrics(slow_threshold_ms=100)
    metrics.record("GET", "/api/v1/quizzes", 200, 50)
    metrics.record("POST", "/api/v1/quizzes/generate-batch", 201, 250)
    metrics.record("GET", "/api/v1/quizzes/missing", 404, 30)

    snapshot = metrics.snapshot()

    assert snapshot["total_requests"] == 3
    assert snapshot["average_duration_ms"] == 110.0
    assert [r["path"] for r in snapshot["slow_requests"]] == ["/api/v1/quizzes/generate-batch"]
    assert snapshot["error_distribution"] == {"404": 1}


def test_reset():
    metrics = RequestMetrics()
    metrics.record("GET", "/", 500, 10)
    metrics.reset()
    assert metrics.snapshot()["total_requests"] == 0
