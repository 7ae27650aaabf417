"""Prometheus metrics helpers."""

from __future__ import annotations

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

REQUEST_COUNT = Counter(
    "scanner_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)
REQUEST_LATENCY = Histogram(
    "scanner_request_latency_seconds",
    "Latency of HTTP requests in seconds",
    ["endpoint"],
)
MODEL_CALLS = Counter(
    "scanner_model_calls_total",
    "Vision model calls by operation and outcome",
    ["operation", "outcome"],
)
MODEL_LATENCY = Histogram(
    "scanner_model_call_seconds",
    "Latency of vision model calls in seconds",
    ["operation"],
)
PAGE_OUTCOMES = Counter(
    "scanner_page_outcomes_total",
    "Page convergence results by pass and status",
    ["scan_pass", "status"],
)
QUESTIONS_SAVED = Counter(
    "scanner_questions_saved_total",
    "Question records handed to the storage sink",
    ["result"],
)


def record_request(method: str, endpoint: str, status: int, latency: float) -> None:
    REQUEST_COUNT.labels(method=method, endpoint=endpoint, status=status).inc()
    REQUEST_LATENCY.labels(endpoint=endpoint).observe(latency)


def record_model_call(operation: str, outcome: str, latency: float) -> None:
    MODEL_CALLS.labels(operation=operation, outcome=outcome).inc()
    MODEL_LATENCY.labels(operation=operation).observe(latency)


def record_page_outcome(scan_pass: str, status: str) -> None:
    PAGE_OUTCOMES.labels(scan_pass=scan_pass, status=status).inc()


def record_question_saved(ok: bool) -> None:
    QUESTIONS_SAVED.labels(result="saved" if ok else "failed").inc()


def latest_metrics() -> tuple[bytes, str]:
    data = generate_latest()
    return data, CONTENT_TYPE_LATEST
