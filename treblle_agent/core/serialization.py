# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""JSON helpers shared by the size guard, the masker and the transport."""

from __future__ import annotations

import json
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

BINARY_TYPES = (bytes, bytearray, memoryview)


def binary_stub(value: bytes | bytearray | memoryview) -> dict[str, Any]:
    """Metadata placeholder for raw binary content."""
    return {"__type": "binary", "size": len(value)}


def json_default(obj: Any) -> Any:
    """Convert the common non-JSON Python values.

    Anything else raises ``TypeError`` so callers can treat the value as
    unprocessable (functions, sockets, arbitrary class instances...).
    """
    if isinstance(obj, (datetime, date, time)):
        return obj.isoformat()
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    if isinstance(obj, BINARY_TYPES):
        return binary_stub(obj)
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def dumps(value: Any) -> str:
    """Compact JSON serialization."""
    return json.dumps(value, default=json_default, separators=(",", ":"), ensure_ascii=False)


def byte_length(text: str) -> int:
    return len(text.encode("utf-8", "surrogatepass"))


def inline_json_strings(value: Any) -> Any:
    """Replace strings holding a JSON object/array by the parsed value.

    Runs before masking so that JSON sent as text is masked like any other
    structured body.
    """
    if isinstance(value, dict):
        return {key: inline_json_strings(item) for key, item in value.items()}
    if isinstance(value, list):
        return [inline_json_strings(item) for item in value]
    if isinstance(value, str) and len(value) >= 2:
        if (value[0] == "{" and value[-1] == "}") or (value[0] == "[" and value[-1] == "]"):
            try:
                return inline_json_strings(json.loads(value))
            except ValueError:
                return value
    return value
