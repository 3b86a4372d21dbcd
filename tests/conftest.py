"""Pytest configuration and shared fixtures for logship tests."""

from __future__ import annotations

from collections.abc import Generator

import pytest
from mocks import InlineDispatcher, ResultRecorder, RetryRecorder, ScriptedTransport

from logship import LogShipper


@pytest.fixture
def transport() -> ScriptedTransport:
    """A transport that answers 200 to everything."""
    return ScriptedTransport()


@pytest.fixture
def results() -> ResultRecorder:
    return ResultRecorder()


@pytest.fixture
def retries() -> RetryRecorder:
    return RetryRecorder()


@pytest.fixture
def make_shipper(transport, results, retries) -> Generator:
    """
    Build LogShippers wired to the fakes.

    Sends run inline and retries fire immediately, so tests are synchronous.
    The flush timer is not started unless the test calls start().
    """
    created: list[LogShipper] = []

    def _make(**options) -> LogShipper:
        options.setdefault("token", "test-token")
        options.setdefault("on_result", results)
        options.setdefault("send_interval", 3600)
        shipper = LogShipper(
            transport=options.pop("transport", transport),
            dispatcher=options.pop("dispatcher", InlineDispatcher()),
            schedule_retry=options.pop("schedule_retry", retries),
            **options,
        )
        created.append(shipper)
        return shipper

    yield _make

    for shipper in created:
        shipper.close(timeout=1)


@pytest.fixture
def sample_record() -> dict:
    """Return a sample log record."""
    return {
        "timestamp": "2024-01-15T10:30:00Z",
        "level": "INFO",
        "message": "Test log message",
        "service": "test-service",
    }
