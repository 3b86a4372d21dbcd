"""
HTTP transport for batch delivery.

Wraps an httpx.Client, turns raw transport failures into TransportError with
a kind, and classifies every attempt into a DeliveryOutcome.
"""

import logging
from dataclasses import dataclass

import httpx

from .batch import DeliveryOutcome
from .errors import DeliveryError, TransportError

logger = logging.getLogger(__name__)

# errors seen when the peer drops the connection mid-request
_RESET_ERRORS = (
    httpx.RemoteProtocolError,
    httpx.ReadError,
    httpx.WriteError,
    ConnectionResetError,
)


@dataclass(frozen=True)
class TransportResponse:
    """A completed HTTP response."""

    status_code: int
    text: str = ""


def classify_exception(exc: BaseException) -> TransportError:
    """Map a raw network exception onto a TransportError kind."""
    if isinstance(exc, TransportError):
        return exc
    if isinstance(exc, httpx.TimeoutException | TimeoutError):
        return TransportError(TransportError.TIMEOUT, exc)
    if isinstance(exc, _RESET_ERRORS) or _caused_by_reset(exc):
        return TransportError(TransportError.RESET, exc)
    return TransportError(TransportError.OTHER, exc)


def _caused_by_reset(exc: BaseException) -> bool:
    seen = set()
    current = exc.__cause__ or exc.__context__
    while current is not None and id(current) not in seen:
        if isinstance(current, ConnectionResetError):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False


def classify(result: TransportResponse | BaseException) -> DeliveryOutcome:
    """
    Classify the result of one attempt.

    Only status 200 is success. Timeouts and connection resets are retryable;
    every other failure, including any non-200 response, is fatal.
    """
    if isinstance(result, TransportResponse):
        if result.status_code == 200:
            return DeliveryOutcome.success()
        return DeliveryOutcome.fatal(
            DeliveryError(
                "There was a problem with the request.\n"
                f"Response: {result.status_code}: {result.text}",
                status_code=result.status_code,
                body=result.text,
            )
        )

    error = classify_exception(result)
    if error.retryable:
        return DeliveryOutcome.retryable(error)
    return DeliveryOutcome.fatal(error)


class HttpTransport:
    """POSTs request bodies with httpx."""

    def __init__(self, client: httpx.Client | None = None):
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=None)

    def post(
        self,
        url: str,
        body: bytes,
        headers: dict[str, str],
        timeout: float | None = None,
    ) -> TransportResponse:
        """
        Send one POST.

        Returns the response whatever its status. Raises TransportError when
        no response was received.
        """
        try:
            response = self._client.post(url, content=body, headers=headers, timeout=timeout)
        except (httpx.TransportError, OSError) as e:
            error = classify_exception(e)
            logger.debug(f"POST failed with {error.kind} error: {e}")
            raise error from e

        return TransportResponse(status_code=response.status_code, text=response.text)

    def close(self):
        if self._owns_client:
            self._client.close()
