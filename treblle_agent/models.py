# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""
Capture descriptors and error records.

Descriptors are the framework-neutral view of a request and its response.
Adapters build them; the payload builder is the only consumer.
"""

import os
import traceback
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel


@dataclass
class RequestDescriptor:
    """Normalized inbound request."""

    timestamp: str
    method: str
    url: str
    ip: str = "127.0.0.1"
    route_path: str = ""
    user_agent: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    query: dict[str, str] = field(default_factory=dict)
    body: Any = None


@dataclass
class ResponseDescriptor:
    """Normalized outbound response. ``load_time`` is in microseconds."""

    code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    load_time: float = 0.0
    size: int | None = None


class ErrorRecord(BaseModel):
    """Where an error happened, without the stack trace."""

    file: str = "unknown"
    line: int = 0
    message: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorRecord":
        """Build a record from the innermost traceback frame of ``exc``."""
        message = str(exc) or type(exc).__name__
        frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
        if not frames:
            return cls(message=message)

        frame = frames[-1]
        return cls(
            file=os.path.basename(frame.filename) or "unknown",
            line=frame.lineno or 0,
            message=message,
        )


def join_header_items(items: Any, lowercase: bool = True) -> dict[str, str]:
    """Collapse ``(name, value)`` pairs into a mapping, joining duplicates."""
    headers: dict[str, str] = {}
    for name, value in items:
        name = str(name).lower() if lowercase else str(name)
        value = str(value)
        headers[name] = f"{headers[name]}, {value}" if name in headers else value
    return headers
