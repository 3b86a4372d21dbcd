"""
logship LogShipper - buffered batch log shipping over HTTP(S).

Records are normalized, buffered in process and POSTed as newline-delimited
JSON batches, either when the buffer reaches buffer_size or when the send
interval elapses. Timeouts and connection resets are retried with exponential
backoff (2s, 4s, 8s, ...). Every batch outcome is passed once to on_result.

Usage:
    from logship import create_logger, setup_logging

    # Option 1: Direct API
    shipper = create_logger(token="abc123", log_type="billing")
    shipper.log("Payment processed")
    shipper.log({"message": "Refund issued", "user_id": "u123"})
    shipper.info("Invoice sent", invoice_id=42)

    # Option 2: As a logging handler
    setup_logging(token="abc123", log_type="billing")

    import logging
    logging.getLogger(__name__).info("Payment processed", extra={"user_id": "u123"})
"""

import atexit
import itertools
import json
import logging
import threading
from datetime import UTC, datetime
from typing import Any

from .batch import Batch
from .buffer import RecordBuffer
from .config import ShipperConfig, options_from_env
from .errors import ConfigurationError
from .records import normalize
from .reporter import ResultReporter
from .scheduler import FlushScheduler, SendDispatcher
from .scheduler import schedule_retry as default_schedule_retry
from .sender import BatchSender
from .transport import HttpTransport

logger = logging.getLogger(__name__)

package_logger = logging.getLogger("logship")

CONSOLE_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _console_handler() -> logging.StreamHandler:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def _enable_debug_output():
    """Raise the logship logger to DEBUG and make sure its output reaches stderr."""
    package_logger.setLevel(logging.DEBUG)
    if not package_logger.hasHandlers():
        package_logger.addHandler(_console_handler())


class LogShipper:
    """
    Batched log shipper.

    Thread-safe. log() never blocks on the network and never raises because
    of a delivery problem; failures are reported through on_result.
    """

    def __init__(
        self,
        config: ShipperConfig | None = None,
        transport=None,
        dispatcher=None,
        schedule_retry=default_schedule_retry,
        **options,
    ):
        """
        Initialize the LogShipper. The flush timer is not started; use
        start() or create_logger().

        Args:
            config: Prebuilt ShipperConfig; otherwise built from options
            transport: Object with post(url, body, headers, timeout) and
                close(); defaults to an httpx-backed HttpTransport
            dispatcher: Object with submit(fn, *args) running sends off the
                caller's thread; defaults to a SendDispatcher pool
            schedule_retry: One-shot timer factory, called as (delay, action)
            **options: ShipperConfig fields (token, protocol, host, ...)
        """
        if config is None:
            config = ShipperConfig.create(**options)
        elif options:
            raise ConfigurationError("Pass either config or keyword options, not both")
        self.config = config

        if config.debug:
            _enable_debug_output()

        self._buffer = RecordBuffer()
        self._batch_ids = itertools.count(1)
        self._flush_lock = threading.Lock()
        self._closed = False
        self._warned_closed = False

        self._owns_dispatcher = dispatcher is None
        self._dispatcher = SendDispatcher() if dispatcher is None else dispatcher
        self._transport = HttpTransport() if transport is None else transport
        self.reporter = ResultReporter(config.on_result)
        self.sender = BatchSender(
            url=config.url,
            transport=self._transport,
            reporter=self.reporter,
            number_of_retries=config.number_of_retries,
            timeout=config.timeout,
            dispatcher=self._dispatcher,
            schedule_retry=schedule_retry,
        )
        self._scheduler = FlushScheduler(config.send_interval, self._timer_flush)

    def start(self) -> "LogShipper":
        """Start the periodic flush timer and register the exit hook."""
        self._scheduler.start()
        atexit.register(self.close)
        return self

    def _timer_flush(self):
        pending = len(self._buffer)
        if pending:
            logger.debug(f"Woke up and saw {pending} messages to send. Sending now...")
            self.flush()

    def log(self, value: Any):
        """
        Normalize value and add it to the buffer, flushing if it is full.

        After close() records are dropped; the first one dropped logs a warning.
        """
        if self._closed:
            if not self._warned_closed:
                self._warned_closed = True
                logger.warning("Shipper is closed, dropping records passed to log()")
            return
        record = normalize(value, self.config.extra_fields, self.config.log_type)
        size = self._buffer.append(record)
        if size >= self.config.buffer_size:
            logger.debug("Buffer is full - sending bulk")
            self.flush()

    def _log_level(self, level: str, message: str, **fields):
        record = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": level,
            "message": message,
        }
        record.update(fields)
        self.log(record)

    def debug(self, message: str, **fields):
        """Log a DEBUG message."""
        self._log_level("DEBUG", message, **fields)

    def info(self, message: str, **fields):
        """Log an INFO message."""
        self._log_level("INFO", message, **fields)

    def warning(self, message: str, **fields):
        """Log a WARNING message."""
        self._log_level("WARNING", message, **fields)

    def error(self, message: str, **fields):
        """Log an ERROR message."""
        self._log_level("ERROR", message, **fields)

    def critical(self, message: str, **fields):
        """Log a CRITICAL message."""
        self._log_level("CRITICAL", message, **fields)

    def flush(self) -> Batch | None:
        """
        Drain the buffer into a new batch and start sending it.

        Returns:
            The dispatched Batch, or None if the buffer was empty.
        """
        # batch ids follow drain order
        with self._flush_lock:
            records = self._buffer.drain_all()
            if not records:
                return None
            batch = Batch(id=next(self._batch_ids), records=records)

        self.sender.send(batch)
        return batch

    def get_stats(self) -> dict:
        """Get shipping statistics."""
        stats = self.sender.stats
        return {
            "buffered": len(self._buffer),
            "in_flight": self.sender.in_flight,
            "batches_sent": stats.batches_sent,
            "batches_failed": stats.batches_failed,
            "records_sent": stats.records_sent,
            "records_failed": stats.records_failed,
            "retries": stats.retries,
            "last_error": stats.last_error,
        }

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def close(self, timeout: float | None = 30.0):
        """
        Stop the timer, flush what is left and wait for pending deliveries.

        Batches still waiting for a retry after timeout seconds are left to
        their daemon timers.
        """
        if self._closed:
            return
        self._closed = True

        self._scheduler.stop()
        self.flush()
        if not self.sender.wait_idle(timeout):
            logger.warning(f"{self.sender.in_flight} batch(es) still in flight at close")
        if self._owns_dispatcher:
            self._dispatcher.shutdown(wait=False)
        self._transport.close()

    def __enter__(self) -> "LogShipper":
        return self

    def __exit__(self, *exc_info):
        self.close()


def create_logger(**options) -> LogShipper:
    """Create a LogShipper and start its flush timer."""
    return LogShipper(**options).start()


def _is_json(value: Any) -> bool:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return False
    return True


class LogShipperHandler(logging.Handler):
    """
    Turns stdlib LogRecords into shipper records.

    Each record becomes timestamp, level, logger and the formatted message,
    plus any JSON-compatible values passed through ``extra``. Records from the
    logship loggers themselves are skipped.
    """

    # attributes every LogRecord carries; anything else came in through extra
    STANDARD_ATTRS = frozenset(
        logging.LogRecord("", logging.NOTSET, "", 0, "", None, None).__dict__
    ) | {"message", "asctime"}

    def __init__(self, shipper: LogShipper, min_level: int = logging.INFO):
        super().__init__(level=min_level)
        self.shipper = shipper

    def emit(self, record: logging.LogRecord):
        # logship's own diagnostics must not feed back into the buffer
        if record.name == "logship" or record.name.startswith("logship."):
            return
        try:
            entry = {
                "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": self.format(record),
            }
            for key, value in record.__dict__.items():
                if key not in self.STANDARD_ATTRS and key not in entry and _is_json(value):
                    entry[key] = value
            self.shipper.log(entry)
        except Exception:
            self.handleError(record)


def setup_logging(
    min_level: int = logging.INFO,
    also_console: bool = True,
    **options,
) -> LogShipper:
    """
    Start a shipper and attach a LogShipperHandler to the root logger.

    The root logger level is lowered to min_level when it would otherwise
    filter out records the handler should ship.

    Args:
        min_level: Lowest level shipped
        also_console: Attach a stderr handler to the root logger as well
        **options: ShipperConfig options (token, host, log_type, ...)

    Returns:
        The started LogShipper
    """
    shipper = create_logger(**options)
    root = logging.getLogger()

    shipping = LogShipperHandler(shipper, min_level=min_level)
    shipping.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(shipping)
    if also_console:
        root.addHandler(_console_handler())

    if root.level == logging.NOTSET or root.level > min_level:
        root.setLevel(min_level)
    return shipper


def from_env(**overrides) -> LogShipper:
    """
    Create and start a LogShipper from environment variables.

    Environment variables:
        LOGSHIP_TOKEN: Listener token (required)
        LOGSHIP_PROTOCOL, LOGSHIP_HOST, LOGSHIP_PORT, LOGSHIP_TYPE,
        LOGSHIP_SEND_INTERVAL, LOGSHIP_BUFFER_SIZE, LOGSHIP_RETRIES,
        LOGSHIP_TIMEOUT: Optional overrides of the defaults

    Args:
        **overrides: Options taking precedence over the environment
    """
    options = options_from_env()
    options.update(overrides)
    if not options.get("token"):
        raise ConfigurationError("LOGSHIP_TOKEN environment variable required")
    return create_logger(**options)
