"""
Batch delivery with retry and exponential backoff.

Each batch moves through PENDING -> SENDING and ends in SUCCEEDED or FAILED.
A timeout or connection reset moves it to RETRY_WAITING instead, and a
one-shot timer sends the same body again after the batch's current backoff.
The backoff starts at 2s and doubles after every retry. Once the retry budget
is spent the batch fails with RetriesExhaustedError.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from . import __version__
from .batch import Batch, BatchState, DeliveryOutcome, OutcomeKind
from .errors import DeliveryError, RetriesExhaustedError, TransportError
from .reporter import ResultReporter
from .scheduler import schedule_retry as default_schedule_retry
from .transport import HttpTransport, classify

logger = logging.getLogger(__name__)

USER_AGENT = f"logship-python/{__version__}"


@dataclass
class SenderStats:
    """Counters for monitoring delivery."""

    batches_sent: int = 0
    batches_failed: int = 0
    records_sent: int = 0
    records_failed: int = 0
    retries: int = 0
    last_error: str | None = None


class BatchSender:
    """Drives the delivery of batches to a single URL."""

    def __init__(
        self,
        url: str,
        transport: HttpTransport,
        reporter: ResultReporter,
        number_of_retries: int = 3,
        timeout: float | None = None,
        dispatcher=None,
        schedule_retry: Callable[[float, Callable[[], None]], object] = default_schedule_retry,
        user_agent: str = USER_AGENT,
    ):
        """
        Args:
            url: Full listener URL including the token query string
            transport: Object with post(url, body, headers, timeout)
            reporter: Receives the final outcome of every batch
            number_of_retries: Re-attempts allowed after the first attempt
            timeout: Per-attempt timeout in seconds, None for no timeout
            dispatcher: Object with submit(fn, *args) used to run the first
                attempt off the caller's thread; None sends inline
            schedule_retry: Arms a one-shot timer, called as (delay, action)
            user_agent: Client identifier header value
        """
        self.url = url
        self.transport = transport
        self.reporter = reporter
        self.number_of_retries = number_of_retries
        self.timeout = timeout
        self.user_agent = user_agent
        self._dispatcher = dispatcher
        self._schedule_retry = schedule_retry

        self.stats = SenderStats()
        self._in_flight = 0
        self._idle = threading.Condition()

    def headers(self, batch: Batch) -> dict[str, str]:
        return {
            "accept": "*/*",
            "user-agent": self.user_agent,
            "content-type": "text/plain",
            "content-length": str(len(batch.body_bytes)),
        }

    def send(self, batch: Batch):
        """Start delivering batch. Returns without waiting for the network."""
        if not batch.records:
            return

        with self._idle:
            self._in_flight += 1

        logger.debug(f"Sending bulk #{batch.id} ({len(batch)} records)")
        if self._dispatcher is None:
            self._attempt(batch)
            return

        try:
            future = self._dispatcher.submit(self._attempt, batch)
        except RuntimeError:
            # Dispatcher already shut down
            self._attempt(batch)
            return
        if hasattr(future, "add_done_callback"):
            future.add_done_callback(_log_stray_exception)

    def _attempt(self, batch: Batch):
        try:
            self._try_once(batch)
        except Exception as e:
            # the batch must still be reported and leave the in-flight count
            logger.error(f"Bulk #{batch.id} - delivery aborted: {e}")
            if not batch.reported:
                error = DeliveryError(f"Delivery of bulk #{batch.id} aborted: {e}", cause=e)
                self._fail(batch, error)

    def _try_once(self, batch: Batch):
        batch.state = BatchState.SENDING
        try:
            response = self.transport.post(
                self.url, batch.body_bytes, self.headers(batch), self.timeout
            )
            outcome = classify(response)
        except TransportError as e:
            outcome = classify(e)
        except Exception as e:
            outcome = DeliveryOutcome.fatal(
                DeliveryError(f"Request for bulk #{batch.id} could not be sent: {e}", cause=e)
            )

        self._handle(batch, outcome)

    def _handle(self, batch: Batch, outcome: DeliveryOutcome):
        if outcome.kind is OutcomeKind.SUCCESS:
            logger.debug(f"Bulk #{batch.id} - sent successfully")
            with self._idle:
                self.stats.batches_sent += 1
                self.stats.records_sent += len(batch)
            self._finish(batch, BatchState.SUCCEEDED, None)
            return

        if outcome.kind is OutcomeKind.RETRYABLE:
            if batch.attempt > self.number_of_retries:
                self._fail(batch, RetriesExhaustedError(batch.attempt, outcome.error))
                return

            delay = batch.next_retry_delay()
            batch.state = BatchState.RETRY_WAITING
            with self._idle:
                self.stats.retries += 1
                self.stats.last_error = outcome.reason
            logger.debug(
                f"Bulk #{batch.id} - trying again in {delay}s, attempt no. {batch.attempt}"
                f" ({outcome.reason})"
            )
            try:
                self._schedule_retry(delay, lambda: self._attempt(batch))
            except RuntimeError as e:
                # threads cannot be started during interpreter shutdown
                self._fail(
                    batch,
                    DeliveryError(
                        f"Could not schedule retry of bulk #{batch.id}: {e}", cause=outcome.error
                    ),
                )
            return

        self._fail(batch, outcome.error)

    def _fail(self, batch: Batch, error: BaseException):
        logger.debug(f"Bulk #{batch.id} - failed: {error}")
        with self._idle:
            self.stats.batches_failed += 1
            self.stats.records_failed += len(batch)
            self.stats.last_error = str(error)
        self._finish(batch, BatchState.FAILED, error)

    def _finish(self, batch: Batch, state: BatchState, error: BaseException | None):
        batch.state = state
        self.reporter.report(batch, error)
        with self._idle:
            self._in_flight -= 1
            self._idle.notify_all()

    @property
    def in_flight(self) -> int:
        with self._idle:
            return self._in_flight

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no batch is in flight. Returns False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: self._in_flight == 0, timeout)


def _log_stray_exception(future):
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error(f"Send task raised: {error!r}")
