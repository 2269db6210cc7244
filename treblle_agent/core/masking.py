# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""
Sensitive data masking for captured requests and responses.

Works on a deep copy of the value: sensitive keys are replaced by runs of
``*``, file-like sub-objects by metadata stubs. Masking is best effort and
never raises.
"""

import json
import math
from collections.abc import Iterable
from typing import Any

from .binary import create_file_metadata, looks_like_file
from .constants import DEFAULT_MASKED_FIELDS, DEFAULT_MAX_PAYLOAD_SIZE, FILE_CARRIER_KEYS, MAX_MASK_DEPTH
from .payload_size import check_payload_size, create_payload_replacement
from .serialization import BINARY_TYPES, binary_stub, dumps

FIXED_MASK = "*****"

UNPROCESSABLE = {"__type": "unprocessable", "message": "Unable to process object"}


def _is_blank(value: Any) -> bool:
    """Values left as-is under a sensitive key (JS-style falsy scalars)."""
    if value is None or value is False or value == "":
        return True
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0 or (isinstance(value, float) and math.isnan(value))
    return False


def mask_value(value: Any) -> Any:
    """Mask a single sensitive value, keeping string length."""
    if _is_blank(value):
        return value
    if isinstance(value, str):
        return "*" * len(value)
    return FIXED_MASK


def build_masked_fields(additional_fields: Iterable[str] | None = None) -> frozenset[str]:
    """Lower-cased set of default plus additional field names."""
    fields = list(DEFAULT_MASKED_FIELDS)
    if additional_fields:
        fields.extend(additional_fields)
    return frozenset(field.lower() for field in fields)


def _mask_mapping(obj: dict, fields: frozenset[str], depth: int) -> None:
    if depth > MAX_MASK_DEPTH:
        return

    for key, value in obj.items():
        key_lower = str(key).lower()

        if key_lower in FILE_CARRIER_KEYS and looks_like_file(value):
            obj[key] = create_file_metadata(value)
            continue

        if key_lower in fields:
            obj[key] = mask_value(value)
        elif isinstance(value, dict):
            _mask_mapping(value, fields, depth + 1)
        elif isinstance(value, list):
            _mask_sequence(value, fields, depth + 1)


def _mask_sequence(items: list, fields: frozenset[str], depth: int) -> None:
    if depth > MAX_MASK_DEPTH:
        return

    for item in items:
        if isinstance(item, dict):
            _mask_mapping(item, fields, depth)
        elif isinstance(item, list):
            _mask_sequence(item, fields, depth + 1)


def mask_sensitive_data(
    data: Any,
    additional_fields: Iterable[str] | None = None,
    max_size: int = DEFAULT_MAX_PAYLOAD_SIZE,
) -> Any:
    """
    Mask sensitive fields in ``data``.

    The input is never mutated. Returns:
        - scalars unchanged
        - ``{"__type": "binary", "size": n}`` for raw bytes
        - a ``large_payload`` placeholder when over ``max_size``
        - ``{"__type": "unprocessable", ...}`` when the value cannot be copied
        - otherwise a masked deep copy
    """
    if data is None or isinstance(data, (str, int, float, bool)):
        return data

    if isinstance(data, BINARY_TYPES):
        return binary_stub(data)

    # Size check comes first: copying a huge value is the expensive part
    size_info = check_payload_size(data, max_size=max_size)
    if size_info.exceeds_limit:
        return create_payload_replacement(data, size_info, max_size)

    try:
        masked = json.loads(dumps(data))
    except (TypeError, ValueError, RecursionError):
        return dict(UNPROCESSABLE)

    fields = build_masked_fields(additional_fields)
    if isinstance(masked, dict):
        _mask_mapping(masked, fields, 0)
    elif isinstance(masked, list):
        _mask_sequence(masked, fields, 1)

    return masked
