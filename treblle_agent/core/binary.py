# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""File and binary content handling.

Captured bodies never carry file contents: uploads and downloads are replaced
by metadata stubs before masking and transport.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any
from urllib.parse import parse_qsl

from .serialization import BINARY_TYPES


class BinaryType(str, Enum):
    """``__type`` markers used in captured bodies."""

    FILE = "file"
    BINARY = "binary"
    TEXT = "text"
    UNPROCESSABLE = "unprocessable"
    NON_JSON = "non-json"


FILE_MIME_TYPES = (
    "application/octet-stream",
    "application/pdf",
    "application/zip",
    "application/x-compressed",
    "application/x-zip-compressed",
    "multipart/form-data",
)

FILE_MIME_PREFIXES = (
    "image/",
    "audio/",
    "video/",
    "font/",
    "application/vnd.",
)

DEFAULT_MIMETYPE = "application/octet-stream"


def is_file_content_type(content_type: str | None) -> bool:
    if not content_type:
        return False
    content_type = content_type.lower()
    if any(mime in content_type for mime in FILE_MIME_TYPES):
        return True
    return content_type.startswith(FILE_MIME_PREFIXES)


def is_file_disposition(disposition: str | None) -> bool:
    if not disposition:
        return False
    disposition = disposition.lower()
    return "attachment" in disposition or "filename" in disposition


def looks_like_file(value: Any) -> bool:
    """True for upload-style objects: content plus a name or type."""
    if not isinstance(value, dict):
        return False
    has_content = bool(value.get("buffer") or value.get("data") or value.get("path"))
    has_meta = bool(
        value.get("mimetype") or value.get("type") or value.get("filename") or value.get("originalname")
    )
    return has_content and has_meta


def _content_length(content: Any) -> int:
    if isinstance(content, dict):
        # Already replaced by a binary stub
        size = content.get("size")
        return size if isinstance(size, int) else 0
    if isinstance(content, (str, list, *BINARY_TYPES)):
        return len(content)
    return 0


def create_file_metadata(file_obj: dict[str, Any]) -> dict[str, Any]:
    return {
        "__type": BinaryType.FILE.value,
        "filename": file_obj.get("originalname") or file_obj.get("filename") or "unknown",
        "size": file_obj.get("size") or _content_length(file_obj.get("buffer")) or 0,
        "mimetype": file_obj.get("mimetype") or file_obj.get("type") or DEFAULT_MIMETYPE,
    }


def parse_request_body(body: bytes, content_type: str | None) -> Any:
    """Decode a raw request body into a JSON-like value.

    Never raises: anything that cannot be decoded becomes ``{}``.
    """
    content_type = (content_type or "").lower()
    if not body:
        return {}

    try:
        if "multipart/form-data" in content_type:
            return {"__type": BinaryType.FILE.value, "contentType": content_type}

        text = body.decode("utf-8", errors="replace")

        if "application/json" in content_type:
            try:
                return json.loads(text)
            except ValueError:
                return text

        if "application/x-www-form-urlencoded" in content_type:
            return dict(parse_qsl(text, keep_blank_values=True))

        return text or {}
    except Exception:
        return {}


def _header_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def process_response_body(
    chunk: Any,
    content_type: str | None = None,
    content_disposition: str | None = None,
    content_length: int | str | None = None,
) -> Any:
    """Turn a response body into a safe, JSON-like representation."""
    if not chunk or callable(chunk):
        return {}

    try:
        if is_file_disposition(content_disposition) or is_file_content_type(content_type):
            return {
                "__type": BinaryType.FILE.value,
                "size": _header_int(content_length),
                "contentType": content_type,
            }

        if isinstance(chunk, BINARY_TYPES):
            try:
                text = bytes(chunk).decode("utf-8")
            except UnicodeDecodeError:
                return {"__type": BinaryType.BINARY.value, "size": len(chunk)}
            chunk = text

        if isinstance(chunk, str):
            try:
                return json.loads(chunk)
            except ValueError:
                return {"__type": BinaryType.TEXT.value, "content": chunk}

        if isinstance(chunk, dict):
            if chunk.get("__type") in (BinaryType.BINARY.value, BinaryType.FILE.value):
                return {
                    "__type": chunk["__type"],
                    "size": chunk.get("size") or 0,
                    "contentType": content_type,
                }
            return chunk

        if isinstance(chunk, list):
            return chunk

        return {"__type": BinaryType.NON_JSON.value}
    except Exception:
        return {"__type": BinaryType.UNPROCESSABLE.value, "message": "Unable to process response body"}
