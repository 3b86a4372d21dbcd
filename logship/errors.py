"""
Exception hierarchy for logship.

Configuration problems are raised at construction time. Everything that goes
wrong while delivering a batch is handed to the result callback instead of
being raised into the caller's code.
"""


class LogShipError(Exception):
    """Base class for all logship errors."""


class ConfigurationError(LogShipError, ValueError):
    """Missing or invalid shipper option."""


class TransportError(LogShipError):
    """
    Failure reported by the transport before a response was received.

    kind is one of TIMEOUT, RESET or OTHER. Only TIMEOUT and RESET are
    considered transient and worth retrying.
    """

    TIMEOUT = "timeout"
    RESET = "reset"
    OTHER = "other"

    RETRYABLE_KINDS = frozenset({TIMEOUT, RESET})

    def __init__(self, kind: str, cause: BaseException | None = None, message: str | None = None):
        self.kind = kind
        self.cause = cause
        if message is None:
            message = f"{kind}: {cause}" if cause is not None else kind
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind in self.RETRYABLE_KINDS


class DeliveryError(LogShipError):
    """Terminal failure of a batch that will not be retried."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.cause = cause


class RetriesExhaustedError(DeliveryError):
    """A transient error kept recurring until the retry budget ran out."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(
            f"Failed after {attempts} attempts on error = {last_error}",
            cause=last_error,
        )
        self.attempts = attempts
        self.last_error = last_error
