# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Framework integrations."""

from .starlette import TreblleMiddleware, add_treblle_middleware, extract_route_path, get_client_ip

__all__ = ["TreblleMiddleware", "add_treblle_middleware", "extract_route_path", "get_client_ip"]
