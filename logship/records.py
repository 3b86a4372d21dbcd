"""
Record normalization and wire serialization.

A record is a plain dict that always carries a ``type`` field. On the wire a
batch is newline-delimited JSON: one record per line, each line terminated by
``\\n``.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger(__name__)

CIRCULAR_MARKER = "[Circular]"
LINE_SEPARATOR = "\n"


def normalize(value: Any, extra_fields: Mapping[str, Any] | None, log_type: str) -> dict[str, Any]:
    """
    Convert a caller-supplied value into a canonical record.

    Plain text (or any non-mapping value) is wrapped as {"message": value}.
    Static extra fields are merged over the caller's fields, then ``type`` is
    always set to log_type. The caller's mapping is never mutated.
    """
    if isinstance(value, Mapping):
        record = dict(value)
    else:
        record = {"message": value}

    if extra_fields:
        record.update(extra_fields)

    record["type"] = log_type
    return record


def to_wire_text(record: Any) -> str:
    """Serialize one record, falling back to a lossy form if JSON fails."""
    try:
        return json.dumps(record, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError, RecursionError) as e:
        logger.debug(f"Record not JSON serializable ({e}), using safe stringify")
        return safe_stringify(record)


def safe_stringify(value: Any) -> str:
    """
    JSON-encode value without ever raising.

    Circular references become "[Circular]" and values json cannot encode
    are replaced by their str() form.
    """
    try:
        return json.dumps(_make_safe(value, set()), separators=(",", ":"), ensure_ascii=False)
    except Exception:  # noqa: BLE001 - last resort must not fail
        return json.dumps(_fallback_str(value))


def _make_safe(value: Any, seen: set[int]) -> Any:
    if value is None or isinstance(value, str | int | float | bool):
        return value

    if isinstance(value, Mapping | list | tuple):
        marker = id(value)
        if marker in seen:
            return CIRCULAR_MARKER
        seen.add(marker)
        try:
            if isinstance(value, Mapping):
                return {str(k): _make_safe(v, seen) for k, v in value.items()}
            return [_make_safe(v, seen) for v in value]
        finally:
            seen.discard(marker)

    return _fallback_str(value)


def _fallback_str(value: Any) -> str:
    try:
        return str(value)
    except Exception:  # noqa: BLE001
        return f"<unprintable {type(value).__name__}>"


def records_to_body(records) -> str:
    """Join records into a request body, one serialized record per line."""
    return "".join(to_wire_text(record) + LINE_SEPARATOR for record in records)
