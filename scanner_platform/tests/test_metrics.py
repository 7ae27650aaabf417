"""Tests for logging/metrics hooks."""

from __future__ import annotations

import json
import logging

from scanner_app.logging_config import JsonFormatter
from scanner_app.metrics import record_page_outcome


def test_metrics_endpoint(client):
    client.get("/api/scan/ping")
    record_page_outcome("first", "accepted")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert b"scanner_requests_total" in resp.data
    assert b"scanner_page_outcomes_total" in resp.data


def test_request_id_header(client):
    resp = client.get("/api/scan/ping", headers={"X-Request-ID": "abc123"})
    assert resp.status_code == 200
    assert resp.headers["X-Request-ID"] == "abc123"


def test_json_formatter_emits_scan_extras():
    record = logging.LogRecord("scan", logging.INFO, __file__, 1, "page %s", (3,), None)
    record.job_id = 7
    record.page_index = 2

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "page 3"
    assert payload["job_id"] == 7
    assert payload["page_index"] == 2
    assert payload["request_id"] == "-"
