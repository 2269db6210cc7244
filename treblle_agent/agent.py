# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""
Capture agent.

Ties environment gating, path filtering, payload building and background
transport together. One agent per configuration; all per-request state lives
in a ``RequestCapture``.

Lifecycle:
  Constructed → Disabled (missing credentials, or environment says no)
              → Armed    → begin(path) → RequestCapture → finish() → capture()
"""

import contextvars
import time
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from .config import TreblleSettings, get_settings
from .core.dispatcher import Dispatcher, create_dispatcher
from .core.environment import get_current_environment, is_enabled_for_environment
from .core.path_filter import should_capture_path
from .core.payload import PayloadBuilder, format_timestamp
from .core.transport import SendOptions, is_https_endpoint, select_endpoint
from .errors import TreblleConfigurationError, TreblleTransportError
from .models import ErrorRecord, RequestDescriptor, ResponseDescriptor

logger = structlog.get_logger(__name__)

_current_capture: contextvars.ContextVar[Optional["RequestCapture"]] = contextvars.ContextVar(
    "treblle_current_capture",
    default=None,
)


class RequestCapture:
    """Per-request capture state: timing and observed errors."""

    def __init__(self, agent: "Treblle", path: str):
        self.agent = agent
        self.path = path
        self.started_at = time.perf_counter()
        self.timestamp = format_timestamp(datetime.now(timezone.utc))
        self.errors: list[ErrorRecord] = []

    def record_error(self, exc: BaseException) -> ErrorRecord:
        record = self.agent.format_error(exc)
        self.errors.append(record)
        return record

    def elapsed_microseconds(self) -> float:
        return (time.perf_counter() - self.started_at) * 1_000_000

    def finish(self, request: RequestDescriptor, response: ResponseDescriptor) -> None:
        """Complete the capture and hand it to the agent (non-blocking)."""
        if not response.load_time:
            response.load_time = self.elapsed_microseconds()
        if not request.timestamp:
            request.timestamp = self.timestamp
        self.agent.capture(request, response, self.errors)


def get_current_capture() -> Optional[RequestCapture]:
    return _current_capture.get()


def activate_capture(capture: Optional[RequestCapture]) -> contextvars.Token:
    return _current_capture.set(capture)


def reset_capture(token: contextvars.Token) -> None:
    _current_capture.reset(token)


def record_error(exc: BaseException) -> Optional[ErrorRecord]:
    """Attach ``exc`` to the request being captured, if any.

    Meant for framework exception handlers that swallow errors before the
    middleware can see them.
    """
    capture = _current_capture.get()
    if capture is None:
        return None
    return capture.record_error(exc)


class Treblle:
    """
    API capture agent.

    Never raises into the host application: a misconfigured agent logs (in
    debug mode) and stays disabled for its whole lifetime.
    """

    def __init__(
        self,
        settings: Optional[TreblleSettings] = None,
        *,
        environment: Optional[str] = None,
        dispatcher: Optional[Dispatcher] = None,
        **options: Any,
    ):
        self.settings = settings if settings is not None else TreblleSettings.model_construct()
        self.debug = options.get("debug") is True or self.settings.debug
        self.environment = environment or get_current_environment()
        self._dispatcher = dispatcher
        self._builder: Optional[PayloadBuilder] = None
        self.enabled = False

        try:
            self.settings = self._resolve_settings(settings, options)
            self.debug = self.settings.debug
            self._validate()
        except (ValidationError, TreblleConfigurationError) as e:
            self._handle_error(e)
            return

        self._builder = PayloadBuilder(
            sdk_token=self.settings.sdk_token,
            api_key=self.settings.api_key,
            additional_masked_fields=self.settings.additional_masked_fields,
            max_payload_size=self.settings.max_payload_size,
            payload_warning_size=self.settings.payload_warning_size,
            enable_size_estimation=self.settings.enable_size_estimation,
        )
        self.enabled = is_enabled_for_environment(self.settings, self.environment)

        if self.debug:
            logger.info(
                "treblle_initialized",
                environment=self.environment,
                enabled=self.enabled,
            )

    def _validate(self) -> None:
        if not self.settings.sdk_token:
            raise TreblleConfigurationError("Treblle SDK requires an SDK token")
        if not self.settings.api_key:
            raise TreblleConfigurationError("Treblle SDK requires an API key")

    @staticmethod
    def _resolve_settings(settings: Optional[TreblleSettings], options: dict[str, Any]) -> TreblleSettings:
        """Explicit options win over ``settings``, which win over the environment."""
        if settings is None:
            return TreblleSettings(**options) if options else get_settings()
        if options:
            return TreblleSettings(**{**settings.model_dump(), **options})
        return settings

    def _handle_error(self, error: BaseException) -> None:
        if self.debug:
            logger.error("treblle_error", error=str(error), error_type=type(error).__name__)

    @property
    def dispatcher(self) -> Dispatcher:
        """Background dispatcher, chosen on first use from the runtime."""
        if self._dispatcher is None:
            self._dispatcher = create_dispatcher()
        return self._dispatcher

    # Gating

    def should_capture(self, path: str) -> bool:
        if not self.enabled:
            return False
        return should_capture_path(path, self.settings.exclude_paths, self.settings.include_paths)

    def begin(self, path: str) -> Optional[RequestCapture]:
        """Start capturing a request, or ``None`` when it must be skipped."""
        if not self.should_capture(path):
            return None
        return RequestCapture(self, path)

    # Errors

    def format_error(self, exc: BaseException) -> ErrorRecord:
        try:
            return ErrorRecord.from_exception(exc)
        except Exception as e:
            self._handle_error(e)
            return ErrorRecord(message=str(exc) or "Unknown error")

    # Capture

    def build_payload(
        self,
        request: RequestDescriptor,
        response: ResponseDescriptor,
        errors: list[ErrorRecord] | None = None,
    ) -> dict[str, Any]:
        if self._builder is None:
            raise TreblleConfigurationError("Agent is not configured")
        return self._builder.build(request, response, errors or [])

    def capture(
        self,
        request: RequestDescriptor,
        response: ResponseDescriptor,
        errors: list[ErrorRecord] | None = None,
    ) -> None:
        """Build the payload and dispatch it in the background.

        Returns immediately; delivery is best effort.
        """
        if not self.enabled:
            return

        try:
            payload = self.build_payload(request, response, errors)
            endpoint = select_endpoint(self.environment)
            if not is_https_endpoint(endpoint):
                raise TreblleTransportError("Treblle SDK only supports HTTPS endpoints")

            if self.settings.debug_verbose:
                logger.debug("treblle_endpoint_selected", endpoint=endpoint)

            self.dispatcher.dispatch(
                SendOptions(
                    endpoint=endpoint,
                    sdk_token=self.settings.sdk_token,
                    payload=payload,
                    timeout_ms=self.settings.transport_timeout_ms,
                    debug=self.debug,
                    debug_verbose=self.settings.debug_verbose,
                )
            )
        except Exception as e:
            self._handle_error(e)
            return

        if self.debug:
            logger.debug(
                "treblle_captured",
                method=request.method,
                route_path=request.route_path,
                status=response.code,
                load_time_us=response.load_time,
            )
