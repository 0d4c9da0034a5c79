import logging
import threading
from collections import deque
from typing import List


class RingBufferHandler(logging.Handler):
    """Keeps the last `capacity` formatted records in memory for /api/debug/logs."""

    def __init__(self, capacity: int = 200):
        super().__init__()
        self._lines = deque(maxlen=max(1, int(capacity)))
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._lines.maxlen

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
        except Exception:
            self.handleError(record)
            return
        with self._lock:
            self._lines.append(line)

    def lines(self, limit: int = 0) -> List[str]:
        with self._lock:
            out = list(self._lines)
        return out[-limit:] if limit > 0 else out

    def resize(self, capacity: int) -> None:
        with self._lock:
            self._lines = deque(self._lines, maxlen=max(1, int(capacity)))

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()


buffer = RingBufferHandler()
