# pageleads/services/metrics_store.py
#
# In-memory store for client performance metrics. Oldest entries fall off
# once max_entries is reached; nothing survives a restart.

import threading
from collections import deque
from typing import Any, Dict, Optional


class MetricsStore:
    def __init__(self, max_entries: int = 1000):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self._entries: deque = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def add(self, payload: Dict[str, Any]) -> None:
        with self._lock:
            self._entries.append(dict(payload))

    def query(self, component: Optional[str] = None, limit: int = 100) -> Dict[str, Any]:
        """Most recent first (by timestamp), optionally filtered by componentName."""
        with self._lock:
            entries = list(self._entries)

        if component:
            entries = [e for e in entries if e.get("componentName") == component]

        ordered = sorted(entries, key=lambda e: e.get("timestamp") or 0, reverse=True)
        return {"metrics": ordered[:max(0, limit)], "total": len(entries)}

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
