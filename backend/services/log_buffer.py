"""
Log Buffer Service

Keeps the most recent log records in memory so administrators can download
them without shell access. The buffer is a logging.Handler owned by the
hosting app; oldest entries are evicted once the capacity is reached.
"""

from typing import List, Dict, Any, Optional
from collections import deque
from datetime import datetime, timezone
import json
import logging
import threading

LEVEL_NAMES = {
    logging.DEBUG: "info",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}


class LogBuffer(logging.Handler):
    """Bounded ring buffer of formatted log entries"""

    def __init__(self, capacity: int = 500, level: int = logging.INFO):
        super().__init__(level)
        self.capacity = capacity
        self._entries: deque = deque(maxlen=capacity)
        self._entries_lock = threading.Lock()

    def emit(self, record: logging.LogRecord):
        try:
            entry = {
                "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                "level": LEVEL_NAMES.get(record.levelno, "info"),
                "source": record.name,
                "message": record.getMessage(),
                "details": None,
            }
            if record.exc_info and record.exc_info[1] is not None:
                exc = record.exc_info[1]
                entry["details"] = {
                    "name": type(exc).__name__,
                    "message": str(exc),
                    "stack": logging.Formatter().formatException(record.exc_info),
                }
            self.push(entry)
        except Exception:
            self.handleError(record)

    def push(self, entry: Dict[str, Any]):
        with self._entries_lock:
            self._entries.append(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def get_logs(self, limit: int = 200, level: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._entries_lock:
            entries = list(self._entries)
        if level:
            entries = [e for e in entries if e["level"] == level]
        return entries[-limit:] if limit > 0 else []

    def as_text(self, limit: int = 200) -> str:
        lines = []
        for e in self.get_logs(limit):
            details = ""
            if e["details"]:
                details = "\n  " + json.dumps(e["details"], ensure_ascii=False, indent=2).replace("\n", "\n  ")
            lines.append(f"[{e['timestamp']}] [{e['level'].upper()}] [{e['source']}] {e['message']}{details}")
        return "\n\n".join(lines)

    def clear(self):
        with self._entries_lock:
            self._entries.clear()


def install_log_buffer(capacity: int = 500, logger: Optional[logging.Logger] = None) -> LogBuffer:
    """Attach a new LogBuffer to the given logger (root by default)"""
    buffer = LogBuffer(capacity)
    (logger or logging.getLogger()).addHandler(buffer)
    return buffer
