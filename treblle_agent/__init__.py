# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Treblle agent - API request/response capture for Starlette and FastAPI apps."""

from .core.constants import SDK_VERSION

__version__ = SDK_VERSION

from .agent import RequestCapture, Treblle, get_current_capture, record_error
from .config import EnvironmentsPolicy, TreblleSettings, get_settings
from .core.masking import mask_sensitive_data
from .core.payload_size import check_payload_size, estimate_size
from .errors import TreblleConfigurationError, TreblleError, TreblleTransportError
from .integrations import TreblleMiddleware, add_treblle_middleware
from .models import ErrorRecord, RequestDescriptor, ResponseDescriptor
from .registry import AgentRegistry

__all__ = [
    # Agent
    "Treblle",
    "RequestCapture",
    "AgentRegistry",
    "get_current_capture",
    "record_error",
    # Config
    "TreblleSettings",
    "EnvironmentsPolicy",
    "get_settings",
    # Descriptors
    "RequestDescriptor",
    "ResponseDescriptor",
    "ErrorRecord",
    # Pipeline helpers
    "mask_sensitive_data",
    "check_payload_size",
    "estimate_size",
    # Integrations
    "TreblleMiddleware",
    "add_treblle_middleware",
    # Errors
    "TreblleError",
    "TreblleConfigurationError",
    "TreblleTransportError",
]
