"""In-memory fan-out of scan progress events to SSE listeners."""

from __future__ import annotations

import json
import queue
import threading
from typing import Dict, Iterator

LISTENER_QUEUE_SIZE = 1000
KEEPALIVE = ": keep-alive"


class JobEventBroker:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.listeners: set[queue.Queue] = set()

    def publish(self, payload: Dict) -> None:
        message = json.dumps(payload, ensure_ascii=False, default=str)
        with self._lock:
            targets = list(self.listeners)
        for listener in targets:
            try:
                listener.put_nowait(message)
            except queue.Full:
                # slow consumer; it will pick up the next snapshot
                continue

    def subscribe(self) -> queue.Queue:
        q: queue.Queue[str] = queue.Queue(maxsize=LISTENER_QUEUE_SIZE)
        with self._lock:
            self.listeners.add(q)
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        with self._lock:
            self.listeners.discard(q)

    def listen(self, keepalive_sec: float = 15.0) -> Iterator[str]:
        """Yield published messages, or KEEPALIVE when idle for ``keepalive_sec``."""
        q = self.subscribe()
        try:
            while True:
                try:
                    yield q.get(timeout=keepalive_sec)
                except queue.Empty:
                    yield KEEPALIVE
        finally:
            self.unsubscribe(q)


job_event_broker = JobEventBroker()
