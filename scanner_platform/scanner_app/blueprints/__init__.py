"""REST API blueprints (scan jobs, catalogue, metrics)."""

from __future__ import annotations

from .catalog_bp import catalog_bp
from .metrics_bp import metrics_bp
from .scan_bp import scan_bp

BLUEPRINTS = (
    (scan_bp, "/api/scan"),
    (catalog_bp, "/api/catalog"),
    (metrics_bp, ""),
)

__all__ = [
    "BLUEPRINTS",
    "catalog_bp",
    "metrics_bp",
    "scan_bp",
]
