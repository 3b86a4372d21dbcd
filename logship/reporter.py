"""Delivers the final outcome of each batch to the completion callback."""

import logging
import threading
from collections.abc import Callable

from .batch import Batch

logger = logging.getLogger(__name__)

ResultCallback = Callable[[BaseException | None], None]


def default_callback(error: BaseException | None):
    """Write delivery failures to the diagnostic log. Never raises."""
    if error is not None:
        logger.error(f"logship error: {error}")


class ResultReporter:
    """
    Invokes the result callback exactly once per batch.

    The callback receives None on success or the terminal error on failure.
    Exceptions raised by the callback are logged and swallowed so they never
    reach the flush thread or the caller of log().
    """

    def __init__(self, callback: ResultCallback | None = None):
        self.callback = callback or default_callback
        self._lock = threading.Lock()

    def report(self, batch: Batch, error: BaseException | None = None) -> bool:
        """Report the outcome of batch. Returns False if it was already reported."""
        with self._lock:
            if batch.reported:
                logger.warning(f"Bulk #{batch.id} - outcome already reported, ignoring")
                return False
            batch.reported = True

        try:
            self.callback(error)
        except Exception as e:
            logger.error(f"Result callback raised for bulk #{batch.id}: {e}")
        return True
