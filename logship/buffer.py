"""Thread-safe in-process buffer of records awaiting transmission."""

import threading
from typing import Any


class RecordBuffer:
    """
    Ordered, append-only queue of normalized records.

    append() and drain_all() share one lock, so a record is either in the
    buffer or in exactly one drained list, never both and never neither.
    """

    def __init__(self):
        self._records: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def append(self, record: dict[str, Any]) -> int:
        """Add a record to the tail and return the new size."""
        with self._lock:
            self._records.append(record)
            return len(self._records)

    def drain_all(self) -> list[dict[str, Any]]:
        """Detach and return every held record, leaving the buffer empty."""
        with self._lock:
            records = self._records
            self._records = []
            return records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __bool__(self) -> bool:
        return len(self) > 0
