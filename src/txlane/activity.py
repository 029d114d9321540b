"""Activity log: the lane's logging sink.

Every message goes to the ``txlane.activity`` logger and into a bounded in-memory
buffer that the HTTP surface serves back to operators.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass

import txlane.constants as C
from txlane.logging_config import SUCCESS

log = logging.getLogger("txlane.activity")

LEVELS = {
    C.Severity.DEBUG: logging.DEBUG,
    C.Severity.INFO: logging.INFO,
    C.Severity.SUCCESS: SUCCESS,
    C.Severity.WARNING: logging.WARNING,
    C.Severity.ERROR: logging.ERROR,
}


@dataclass(slots=True)
class ActivityRecord:
    timestamp: str
    severity: C.Severity
    message: str

    def __str__(self):
        return f"[ {self.timestamp} ] {self.message}"


class ActivityLog:
    def __init__(self, maxlen: int = C.ACTIVITY_MAXLEN, *, debug: bool = False) -> None:
        self.debug = debug
        self._records: deque[ActivityRecord] = deque(maxlen=maxlen)

    def log(self, message: str, severity: C.Severity | str = C.Severity.INFO) -> None:
        severity = C.Severity(severity)
        log.log(LEVELS[severity], message)
        if severity is C.Severity.DEBUG and not self.debug:
            return
        self._records.append(ActivityRecord(time.strftime("%H:%M:%S"), severity, message))

    def records(self, limit: int | None = None) -> list[ActivityRecord]:
        recs = list(self._records)
        return recs[-limit:] if limit else recs

    def clear(self) -> None:
        self._records.clear()
        self.log("Transaction logs cleared.", C.Severity.INFO)

    def __len__(self) -> int:
        return len(self._records)
