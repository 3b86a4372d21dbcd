"""
Unit tests for the HTTP transport.

Uses httpx.MockTransport so no sockets are opened.
"""

import httpx
import pytest
from mocks import ResultRecorder, RetryRecorder

from logship.batch import Batch, OutcomeKind
from logship.errors import DeliveryError, TransportError
from logship.reporter import ResultReporter
from logship.sender import BatchSender
from logship.transport import (
    HttpTransport,
    TransportResponse,
    classify,
    classify_exception,
)

URL = "http://listener.test:8070?token=abc"


def make_transport(handler) -> HttpTransport:
    return HttpTransport(client=httpx.Client(transport=httpx.MockTransport(handler)))


class TestClassifyException:
    """Test mapping of raw exceptions to TransportError kinds."""

    @pytest.mark.parametrize(
        "exc",
        [
            httpx.ReadTimeout("read timed out"),
            httpx.ConnectTimeout("connect timed out"),
            httpx.WriteTimeout("write timed out"),
            TimeoutError("timed out"),
        ],
    )
    def test_timeouts(self, exc):
        error = classify_exception(exc)
        assert error.kind == TransportError.TIMEOUT
        assert error.retryable is True
        assert error.cause is exc

    @pytest.mark.parametrize(
        "exc",
        [
            httpx.RemoteProtocolError("Server disconnected without sending a response."),
            httpx.ReadError("connection reset"),
            httpx.WriteError("broken"),
            ConnectionResetError(104, "Connection reset by peer"),
        ],
    )
    def test_resets(self, exc):
        error = classify_exception(exc)
        assert error.kind == TransportError.RESET
        assert error.retryable is True

    def test_reset_found_in_cause_chain(self):
        """A wrapped ConnectionResetError is still a reset."""
        try:
            try:
                raise ConnectionResetError("reset")
            except ConnectionResetError as inner:
                raise httpx.NetworkError("network failure") from inner
        except httpx.NetworkError as e:
            error = classify_exception(e)
        assert error.kind == TransportError.RESET

    @pytest.mark.parametrize(
        "exc",
        [
            httpx.ConnectError("connection refused"),
            httpx.UnsupportedProtocol("ftp"),
            OSError("no route to host"),
        ],
    )
    def test_other_errors_are_not_retryable(self, exc):
        error = classify_exception(exc)
        assert error.kind == TransportError.OTHER
        assert error.retryable is False

    def test_transport_error_passes_through(self):
        original = TransportError(TransportError.RESET)
        assert classify_exception(original) is original


class TestClassify:
    """Test outcome classification of a single attempt."""

    def test_200_is_success(self):
        assert classify(TransportResponse(200, "ok")).kind is OutcomeKind.SUCCESS

    @pytest.mark.parametrize("status", [201, 204, 400, 401, 413, 500, 503])
    def test_non_200_is_fatal(self, status):
        outcome = classify(TransportResponse(status, "nope"))

        assert outcome.kind is OutcomeKind.FATAL
        assert isinstance(outcome.error, DeliveryError)
        assert outcome.error.status_code == status
        assert outcome.error.body == "nope"
        assert f"{status}: nope" in str(outcome.error)

    def test_timeout_is_retryable(self):
        outcome = classify(httpx.ReadTimeout("slow"))
        assert outcome.kind is OutcomeKind.RETRYABLE
        assert outcome.error.kind == TransportError.TIMEOUT

    def test_connect_error_is_fatal(self):
        outcome = classify(httpx.ConnectError("refused"))
        assert outcome.kind is OutcomeKind.FATAL


class TestHttpTransport:
    """Test HttpTransport against httpx.MockTransport."""

    def test_post_sends_body_and_headers(self):
        """The body and headers reach the server unchanged."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["body"] = request.content
            seen["headers"] = request.headers
            return httpx.Response(200, text="ok")

        transport = make_transport(handler)
        body = b'{"message":"a"}\n'
        response = transport.post(
            URL, body, {"content-type": "text/plain", "content-length": str(len(body))}
        )

        assert response == TransportResponse(200, "ok")
        assert seen["method"] == "POST"
        assert seen["url"].endswith("?token=abc")
        assert seen["body"] == body
        assert seen["headers"]["content-type"] == "text/plain"
        assert seen["headers"]["content-length"] == str(len(body))

    def test_non_200_is_returned_not_raised(self):
        transport = make_transport(lambda request: httpx.Response(400, text="bad token"))
        response = transport.post(URL, b"x\n", {})
        assert response.status_code == 400
        assert response.text == "bad token"

    def test_timeout_raises_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        transport = make_transport(handler)
        with pytest.raises(TransportError) as exc_info:
            transport.post(URL, b"x\n", {}, timeout=0.5)

        assert exc_info.value.kind == TransportError.TIMEOUT
        assert exc_info.value.retryable

    def test_connect_error_raises_other(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        transport = make_transport(handler)
        with pytest.raises(TransportError) as exc_info:
            transport.post(URL, b"x\n", {})

        assert exc_info.value.kind == TransportError.OTHER

    def test_close_leaves_injected_client_open(self):
        client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        HttpTransport(client=client).close()
        assert not client.is_closed
        client.close()

    def test_close_owned_client(self):
        transport = HttpTransport()
        transport.close()
        assert transport._client.is_closed


class TestRetryOverHttp:
    """HttpTransport errors driving the sender's retry path."""

    def test_read_error_is_retried(self):
        """A connection dropped mid-request is retried once and then succeeds."""
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ReadError("Connection reset by peer", request=request)
            return httpx.Response(200, text="ok")

        results, retries = ResultRecorder(), RetryRecorder()
        sender = BatchSender(
            url=URL,
            transport=make_transport(handler),
            reporter=ResultReporter(results),
            schedule_retry=retries,
        )

        sender.send(Batch(id=1, records=[{"message": "m", "type": "t"}]))

        assert retries.delays == [2.0]
        assert results.results == [None]
        assert len(calls) == 2

    def test_wrapped_reset_raises_reset(self):
        def handler(request):
            try:
                raise ConnectionResetError(104, "Connection reset by peer")
            except ConnectionResetError as e:
                raise httpx.ConnectError("connection failed", request=request) from e

        transport = make_transport(handler)
        with pytest.raises(TransportError) as exc_info:
            transport.post(URL, b"x\n", {})

        assert exc_info.value.kind == TransportError.RESET
