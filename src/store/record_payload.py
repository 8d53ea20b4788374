"""Canonical JSON serialization for metadata records.

This module centralizes the byte-stable record form shared by the
metadata store and the snapshot codec.
"""

from __future__ import annotations

import json
from typing import Any

from core.types import JsonPayload


def canonical_json(payload: JsonPayload) -> str:
    """Serialize a payload into its canonical record string.

    Object keys are sorted and separators are compact, so logically equal
    payloads always produce identical records.

    Args:
        payload: JSON-serializable payload.

    Returns:
        Canonical JSON string.

    Raises:
        TypeError: If payload contains non-JSON values.
    """
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def parse_record(record: str) -> Any:
    """Parse a stored canonical record back into a payload.

    Args:
        record: Canonical JSON string.

    Returns:
        Decoded payload.

    Raises:
        ValueError: If the record is not valid JSON.
    """
    try:
        return json.loads(record)
    except json.JSONDecodeError as error:
        raise ValueError(f"Invalid metadata record: {error.msg}") from error
