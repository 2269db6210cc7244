# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Exception types for the capture agent.

None of these reach the host application: the agent raises them internally
and turns them into (debug) log entries.
"""


class TreblleError(Exception):
    """Base class for all agent exceptions."""


class TreblleConfigurationError(TreblleError):
    """Raised when the agent is missing required credentials."""


class TreblleTransportError(TreblleError):
    """Raised when a payload cannot be handed to a collector."""
