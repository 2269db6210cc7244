# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Payload size guard.

Classifies a captured value as normal, large (warning threshold) or over the
limit without always paying for a full serialization:

- ``estimate_size`` walks the structure and stops as soon as the running
  total passes the limit.
- ``check_payload_size`` only serializes when the estimate is under the limit.
- ``create_payload_replacement`` builds the placeholder sent instead of an
  oversized value.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import islice
from typing import Any

from .constants import DEFAULT_MAX_PAYLOAD_SIZE, DEFAULT_WARNING_PAYLOAD_SIZE
from .serialization import BINARY_TYPES, byte_length, dumps

NODE_OVERHEAD = 24  # bytes charged per list/dict node
NUMBER_SIZE = 8
OTHER_SIZE = 8
MAX_REPLACEMENT_KEYS = 5


@dataclass
class PayloadSizeInfo:
    """Result of a size check."""

    size: int
    is_large: bool
    exceeds_limit: bool
    estimated_size: int | None = None


def _serialize(value: Any) -> str:
    """Exact serialization used for precise sizing."""
    return dumps(value)


def estimate_size(value: Any, max_depth: int = 10, max_size: int = DEFAULT_MAX_PAYLOAD_SIZE) -> int:
    """Estimate the serialized size of ``value`` in bytes without serializing it.

    Subtrees deeper than ``max_depth`` cost nothing. Containers return their
    partial sum as soon as it passes ``max_size``.
    """
    if max_depth <= 0 or value is None:
        return 0

    if isinstance(value, str):
        return byte_length(value)
    if isinstance(value, bool):
        return 1
    if isinstance(value, (int, float)):
        return NUMBER_SIZE
    if isinstance(value, BINARY_TYPES):
        return len(value)

    if isinstance(value, (list, tuple, set, frozenset)):
        size = NODE_OVERHEAD
        for item in value:
            size += estimate_size(item, max_depth - 1, max_size)
            if size > max_size:
                return size
        return size

    if isinstance(value, dict):
        size = NODE_OVERHEAD
        for key, item in value.items():
            size += byte_length(str(key))
            size += estimate_size(item, max_depth - 1, max_size)
            if size > max_size:
                return size
        return size

    return OTHER_SIZE


def check_payload_size(
    value: Any,
    max_size: int = DEFAULT_MAX_PAYLOAD_SIZE,
    warning_size: int = DEFAULT_WARNING_PAYLOAD_SIZE,
    enable_estimation: bool = True,
) -> PayloadSizeInfo:
    """Classify ``value`` against the warning and hard limits."""
    if value is None:
        return PayloadSizeInfo(size=0, is_large=False, exceeds_limit=False)

    estimated: int | None = None
    if enable_estimation:
        estimated = estimate_size(value, max_size=max_size)
        # Over the limit already: skip the O(n) serialization
        if estimated > max_size:
            return PayloadSizeInfo(
                size=estimated,
                is_large=True,
                exceeds_limit=True,
                estimated_size=estimated,
            )

    try:
        size = byte_length(_serialize(value))
    except (TypeError, ValueError, RecursionError):
        size = estimated or 0

    return PayloadSizeInfo(
        size=size,
        is_large=size > warning_size,
        exceeds_limit=size > max_size,
        estimated_size=estimated,
    )


def _original_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, BINARY_TYPES):
        return "buffer"
    if isinstance(value, (list, tuple, set, frozenset)):
        return "array"
    return "object"


def create_payload_replacement(
    value: Any,
    size_info: PayloadSizeInfo,
    max_size: int = DEFAULT_MAX_PAYLOAD_SIZE,
) -> dict[str, Any]:
    """Placeholder describing an oversized value without carrying its content.

    Only the first five keys of a mapping are listed, followed by ``"..."``
    when there are more.
    """
    replacement: dict[str, Any] = {
        "__type": "large_payload",
        "message": "Payload exceeds size limit",
        "size": size_info.size,
        "maxSize": max_size,
    }
    if size_info.estimated_size is not None:
        replacement["estimatedSize"] = size_info.estimated_size

    if value is None:
        return replacement

    original_type = _original_type(value)
    replacement["originalType"] = original_type
    if original_type in ("array", "buffer"):
        replacement["length"] = len(value)
    elif isinstance(value, dict):
        keys = [str(key) for key in islice(value, MAX_REPLACEMENT_KEYS + 1)]
        if len(keys) > MAX_REPLACEMENT_KEYS:
            keys = keys[:MAX_REPLACEMENT_KEYS] + ["..."]
        replacement["keys"] = keys

    return replacement


def process_payload_with_size_check(
    value: Any,
    max_size: int = DEFAULT_MAX_PAYLOAD_SIZE,
    warning_size: int = DEFAULT_WARNING_PAYLOAD_SIZE,
    enable_estimation: bool = True,
) -> Any:
    """Return ``value`` unchanged, or its placeholder when over the limit."""
    size_info = check_payload_size(value, max_size, warning_size, enable_estimation)
    if size_info.exceeds_limit:
        return create_payload_replacement(value, size_info, max_size)
    return value
