"""
logship - Client-side log shipping with batching and retry.

This package provides:
- LogShipper: buffers records and ships them as newline-delimited JSON batches
- LogShipperHandler / setup_logging: bridge from the standard logging module
- errors: the exception types handed to the result callback

Usage:
    from logship import create_logger

    shipper = create_logger(
        token="abc123",
        host="listener.logz.io",
        log_type="my-service",
        on_result=lambda err: print("batch failed", err) if err else None,
    )
    shipper.log("Service started")
    shipper.log({"message": "Order placed", "order_id": 17})
"""

__version__ = "1.0.0"

from .batch import Batch, BatchState, DeliveryOutcome, OutcomeKind  # noqa: E402
from .buffer import RecordBuffer  # noqa: E402
from .config import DEFAULT_HOST, ShipperConfig  # noqa: E402
from .errors import (  # noqa: E402
    ConfigurationError,
    DeliveryError,
    LogShipError,
    RetriesExhaustedError,
    TransportError,
)
from .records import normalize, records_to_body, safe_stringify, to_wire_text  # noqa: E402
from .shipper import (  # noqa: E402
    LogShipper,
    LogShipperHandler,
    create_logger,
    from_env,
    setup_logging,
)

__all__ = [
    # Shipper
    "LogShipper",
    "LogShipperHandler",
    "create_logger",
    "setup_logging",
    "from_env",
    "ShipperConfig",
    "DEFAULT_HOST",
    # Building blocks
    "RecordBuffer",
    "Batch",
    "BatchState",
    "DeliveryOutcome",
    "OutcomeKind",
    "normalize",
    "to_wire_text",
    "safe_stringify",
    "records_to_body",
    # Errors
    "LogShipError",
    "ConfigurationError",
    "TransportError",
    "DeliveryError",
    "RetriesExhaustedError",
]
