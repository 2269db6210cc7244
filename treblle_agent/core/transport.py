# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""
Collector transport.

Delivers a wire payload to a collector endpoint over HTTPS:

- ``AsyncCollectorTransport`` for event-loop hosts; the whole request is
  bounded by ``asyncio.wait_for`` and cancelled on expiry.
- ``SyncCollectorTransport`` for threaded hosts; socket-level timeouts, the
  connection is closed after every send.

Both are best effort: no retries, every failure is swallowed and only logged
in debug mode.
"""

import asyncio
import json
import random
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx
import structlog

from .constants import COLLECTOR_ENDPOINTS, DEFAULT_TIMEOUT_MS, STAGING_ENDPOINT, STAGING_ENVIRONMENT
from .serialization import json_default

logger = structlog.get_logger(__name__)

PREVIEW_LENGTH = 500


@dataclass
class SendOptions:
    """One delivery attempt."""

    endpoint: str
    sdk_token: str
    payload: dict[str, Any]
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    debug: bool = False
    debug_verbose: bool = False

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


def select_endpoint(environment: str | None = None) -> str:
    """Pick a collector endpoint; staging has a dedicated one."""
    if environment == STAGING_ENVIRONMENT:
        return STAGING_ENDPOINT
    return random.choice(COLLECTOR_ENDPOINTS)


def is_https_endpoint(endpoint: str) -> bool:
    try:
        return httpx.URL(endpoint).scheme == "https"
    except (httpx.InvalidURL, TypeError):
        return False


def serialize_payload(payload: dict[str, Any]) -> bytes:
    """Compact JSON body. The payload is sent as built, already masked."""
    body = json.dumps(
        payload,
        default=json_default,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return body.encode("utf-8", "surrogatepass")


def build_headers(sdk_token: str) -> dict[str, str]:
    return {"Content-Type": "application/json", "x-api-key": sdk_token}


def _log_verbose_request(options: SendOptions, body: bytes) -> None:
    if options.debug_verbose:
        logger.debug(
            "treblle_transport_sending",
            endpoint=options.endpoint,
            bytes=len(body),
            preview=body[:PREVIEW_LENGTH].decode("utf-8", errors="replace"),
        )


def _log_verbose_response(options: SendOptions, response: httpx.Response) -> None:
    if options.debug_verbose:
        logger.debug(
            "treblle_transport_response",
            endpoint=options.endpoint,
            status=response.status_code,
            body=response.text[:PREVIEW_LENGTH],
        )


class CollectorTransport(Protocol):
    """Protocol for collector transports."""

    def send(self, options: SendOptions) -> Any: ...


class AsyncCollectorTransport:
    """Delivers payloads with ``httpx.AsyncClient``."""

    def __init__(self, http_transport: Optional[httpx.AsyncBaseTransport] = None):
        self._http_transport = http_transport

    async def send(self, options: SendOptions) -> None:
        try:
            await asyncio.wait_for(self._post(options), timeout=options.timeout_seconds)
        except asyncio.TimeoutError:
            if options.debug:
                logger.warning(
                    "treblle_transport_timeout",
                    endpoint=options.endpoint,
                    timeout_ms=options.timeout_ms,
                )
        except Exception as e:
            if options.debug:
                logger.warning("treblle_transport_error", endpoint=options.endpoint, error=str(e))

    async def _post(self, options: SendOptions) -> None:
        body = serialize_payload(options.payload)
        _log_verbose_request(options, body)
        async with httpx.AsyncClient(
            timeout=options.timeout_seconds,
            transport=self._http_transport,
        ) as client:
            response = await client.post(
                options.endpoint,
                content=body,
                headers=build_headers(options.sdk_token),
            )
        _log_verbose_response(options, response)


class SyncCollectorTransport:
    """Delivers payloads with a blocking ``httpx.Client``."""

    def __init__(self, http_transport: Optional[httpx.BaseTransport] = None):
        self._http_transport = http_transport

    def send(self, options: SendOptions) -> None:
        try:
            body = serialize_payload(options.payload)
            _log_verbose_request(options, body)
            with httpx.Client(
                timeout=httpx.Timeout(options.timeout_seconds),
                transport=self._http_transport,
            ) as client:
                response = client.post(
                    options.endpoint,
                    content=body,
                    headers=build_headers(options.sdk_token),
                )
            _log_verbose_response(options, response)
        except httpx.TimeoutException:
            if options.debug:
                logger.warning(
                    "treblle_transport_timeout",
                    endpoint=options.endpoint,
                    timeout_ms=options.timeout_ms,
                )
        except Exception as e:
            if options.debug:
                logger.warning("treblle_transport_error", endpoint=options.endpoint, error=str(e))
