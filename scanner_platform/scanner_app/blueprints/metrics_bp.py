"""Prometheus exposition of request and scan counters."""

from __future__ import annotations

from flask import Blueprint, Response

from ..metrics import latest_metrics

metrics_bp = Blueprint("metrics_bp", __name__)


@metrics_bp.get("/metrics")
def scrape():
    body, content_type = latest_metrics()
    response = Response(body, mimetype=content_type)
    response.headers["Cache-Control"] = "no-store"
    return response
