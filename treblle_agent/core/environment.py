# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Environment detection and environment-based enablement."""

import os
from collections.abc import Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import TreblleSettings

DEFAULT_ENVIRONMENT = "development"

# Checked in order, first non-empty value wins
ENVIRONMENT_VARIABLES = (
    "APP_ENV",
    "ENVIRONMENT",
    "ENV",
    "PYTHON_ENV",
    "VERCEL_ENV",
    "HEROKU_ENVIRONMENT",
)


def get_current_environment(environ: Mapping[str, str] | None = None) -> str:
    """Detect the current environment name (lower-cased)."""
    environ = os.environ if environ is None else environ

    for name in ENVIRONMENT_VARIABLES:
        value = environ.get(name)
        if value:
            return value.lower()

    # AWS Lambda is assumed to be production unless stated otherwise
    if environ.get("AWS_REGION") or environ.get("AWS_LAMBDA_FUNCTION_NAME"):
        return "production"

    azure = environ.get("AZURE_FUNCTIONS_ENVIRONMENT")
    if azure:
        return azure.lower()

    return DEFAULT_ENVIRONMENT


def is_enabled_for_environment(settings: "TreblleSettings", environment: str) -> bool:
    """Decide whether capture is active for ``environment``.

    Precedence: explicit ``enabled`` flag, then the environments policy,
    then enabled.
    """
    if settings.enabled is not None:
        return settings.enabled

    policy = settings.environments
    if policy is None:
        return True
    if isinstance(policy, bool):
        return policy

    if environment in policy.disabled:
        return False

    if policy.enabled:
        if environment in policy.enabled:
            return True
        return policy.default if policy.default is not None else False

    return policy.default if policy.default is not None else True
