"""
In-memory log buffer.
Keeps the most recent log records so they can be served over the HTTP API.
"""
import logging
import threading
from collections import deque
from datetime import datetime
from typing import Any, Dict, List, Optional


class MemoryLogHandler(logging.Handler):
    """Logging handler that retains the last ``capacity`` records."""

    def __init__(self, capacity: int = 500, level: int = logging.INFO):
        super().__init__(level=level)
        self.capacity = capacity
        self._records = deque(maxlen=capacity)
        self._buffer_lock = threading.Lock()

    def emit(self, record: logging.LogRecord):
        try:
            entry = {
                'timestamp': datetime.fromtimestamp(record.created).isoformat(),
                'level': record.levelname.lower(),
                'logger': record.name,
                'message': record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                entry['details'] = str(record.exc_info[1])
        except Exception:
            self.handleError(record)
            return

        with self._buffer_lock:
            self._records.append(entry)

    def get_logs(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Return buffered entries, oldest first; ``limit`` keeps only the newest."""
        with self._buffer_lock:
            entries = list(self._records)
        if limit is not None and limit > 0:
            return entries[-limit:]
        return entries

    def clear(self):
        with self._buffer_lock:
            self._records.clear()
