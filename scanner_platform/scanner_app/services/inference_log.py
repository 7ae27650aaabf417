"""In-memory log buffer plus SSE broadcast for model API interactions."""

from __future__ import annotations

import json
import logging
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from flask import current_app, has_app_context

from .job_events import job_event_broker

logger = logging.getLogger(__name__)

LOG_MAX_ENTRIES = 500
_buffer: deque[Dict[str, Any]] = deque(maxlen=LOG_MAX_ENTRIES)


def _log_dir() -> Path | None:
    if not has_app_context():
        return None
    configured = current_app.config.get("INFERENCE_LOG_DIR")
    if configured:
        return Path(configured)
    return Path(current_app.instance_path) / "logs" / "inference"


def _append_to_file(entry: Dict[str, Any]) -> None:
    """Persist log to a per-job file so logs survive restarts."""
    base_dir = _log_dir()
    if base_dir is None:
        return
    job_id = entry.get("job_id") or "general"
    try:
        base_dir.mkdir(parents=True, exist_ok=True)
        with (base_dir / f"job-{job_id}.log").open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry, ensure_ascii=False) + "\n")
    except OSError as exc:
        logger.debug("Inference log file write failed: %s", exc)


def log_event(kind: str, payload: Dict[str, Any]) -> None:
    """Store a log entry in memory and append to per-job file."""
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "kind": kind,
        **payload,
    }
    _buffer.appendleft(entry)
    _append_to_file(entry)
    job_event_broker.publish({"type": "inference_log", "payload": entry})


def get_logs(limit: int = 100) -> List[Dict[str, Any]]:
    """Return a copy of the most recent log entries (in-memory)."""
    limit = max(1, min(limit, LOG_MAX_ENTRIES))
    return list(_buffer)[:limit]


def clear() -> None:
    _buffer.clear()
