# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Wire payload builder.

Masks and size-guards request/response descriptors and assembles the JSON
document sent to the collector. Never raises: a part that cannot be processed
degrades to ``{}`` or ``0``.
"""

from __future__ import annotations

import platform
import socket
import time
from collections.abc import Iterable
from datetime import datetime
from functools import lru_cache
from typing import Any

import structlog

from ..models import ErrorRecord, RequestDescriptor, ResponseDescriptor
from .constants import DEFAULT_MAX_PAYLOAD_SIZE, DEFAULT_WARNING_PAYLOAD_SIZE, SDK_NAME, SDK_VERSION
from .masking import mask_sensitive_data
from .payload_size import process_payload_with_size_check
from .serialization import BINARY_TYPES, byte_length, dumps, inline_json_strings

logger = structlog.get_logger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(TIMESTAMP_FORMAT)


@lru_cache
def get_server_ip() -> str:
    """First non-loopback IPv4 address of this host."""
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET)
    except OSError:
        return "127.0.0.1"
    for info in infos:
        address = info[4][0]
        if not address.startswith("127."):
            return address
    return "127.0.0.1"


def get_timezone() -> str:
    return datetime.now().astimezone().tzname() or time.tzname[0]


def get_server_info() -> dict[str, Any]:
    python_version = platform.python_version()
    return {
        "ip": get_server_ip(),
        "timezone": get_timezone(),
        "os": {
            "name": platform.system().lower(),
            "release": platform.release(),
            "architecture": platform.machine(),
        },
        "software": f"{platform.python_implementation()} {python_version}",
        "language": {"name": SDK_NAME, "version": python_version},
    }


def _header(headers: dict[str, Any], name: str) -> Any:
    for key, value in headers.items():
        if str(key).lower() == name:
            return value
    return None


def calculate_response_size(body: Any, headers: dict[str, Any] | None = None) -> int:
    """Response size in bytes.

    Prefers ``Content-Length``, then the ``size`` of a file/binary stub, then
    the UTF-8 length of the body or of its JSON serialization.
    """
    try:
        content_length = _header(headers or {}, "content-length")
        if content_length:
            return int(content_length)

        if isinstance(body, dict) and body.get("__type") in ("file", "binary") and body.get("size"):
            return int(body["size"])

        if not body:
            return 0
        if isinstance(body, str):
            return byte_length(body)
        if isinstance(body, BINARY_TYPES):
            return len(body)
        if isinstance(body, (dict, list, tuple)):
            return byte_length(dumps(body))
        return 0
    except Exception:
        return 0


class PayloadBuilder:
    """Builds wire payloads for one agent configuration."""

    def __init__(
        self,
        sdk_token: str,
        api_key: str,
        additional_masked_fields: Iterable[str] = (),
        max_payload_size: int = DEFAULT_MAX_PAYLOAD_SIZE,
        payload_warning_size: int = DEFAULT_WARNING_PAYLOAD_SIZE,
        enable_size_estimation: bool = True,
    ):
        self.sdk_token = sdk_token
        self.api_key = api_key
        self.additional_masked_fields = list(additional_masked_fields)
        self.max_payload_size = max_payload_size
        self.payload_warning_size = payload_warning_size
        self.enable_size_estimation = enable_size_estimation

    def _expand(self, value: Any) -> Any:
        try:
            return inline_json_strings(value)
        except RecursionError:
            # Circular structures are left for the masker to reject
            return value

    def _mask(self, value: Any, fallback: Any) -> Any:
        try:
            return mask_sensitive_data(
                self._expand(value),
                self.additional_masked_fields,
                self.max_payload_size,
            )
        except Exception as e:
            logger.debug("treblle_mask_failed", error=str(e))
            return fallback

    def _process_body(self, body: Any) -> Any:
        masked = self._mask(body, {})
        try:
            return process_payload_with_size_check(
                masked,
                max_size=self.max_payload_size,
                warning_size=self.payload_warning_size,
                enable_estimation=self.enable_size_estimation,
            )
        except Exception as e:
            logger.debug("treblle_size_check_failed", error=str(e))
            return {}

    def build(
        self,
        request: RequestDescriptor,
        response: ResponseDescriptor,
        errors: Iterable[ErrorRecord] = (),
    ) -> dict[str, Any]:
        try:
            server = get_server_info()
        except Exception:
            server = {}

        if response.size is not None:
            response_size = response.size
        else:
            response_size = calculate_response_size(response.body, response.headers)

        return {
            "api_key": self.sdk_token,
            "project_id": self.api_key,
            "sdk": SDK_NAME,
            "version": SDK_VERSION,
            "data": {
                "server": server,
                "request": {
                    "timestamp": request.timestamp,
                    "ip": request.ip,
                    "url": request.url,
                    "route_path": request.route_path,
                    "user_agent": request.user_agent,
                    "method": request.method,
                    "headers": self._mask(request.headers, {}),
                    "body": self._process_body(request.body),
                },
                "response": {
                    "headers": self._mask(response.headers, {}),
                    "code": response.code,
                    "size": response_size,
                    "load_time": response.load_time,
                    "body": self._process_body(response.body),
                },
                "errors": [error.model_dump() for error in errors],
            },
        }
