# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Agent settings using Pydantic Settings."""

import re
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.constants import (
    DEFAULT_MAX_PAYLOAD_SIZE,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_WARNING_PAYLOAD_SIZE,
)


class EnvironmentsPolicy(BaseModel):
    """Per-environment enablement.

    ``disabled`` wins over ``enabled``; ``default`` applies to environments
    listed in neither.
    """

    enabled: list[str] = Field(default_factory=list)
    disabled: list[str] = Field(default_factory=list)
    default: bool | None = None


class TreblleSettings(BaseSettings):
    """Configuration for the capture agent.

    All settings can be overridden via ``TREBLLE_*`` environment variables;
    keyword arguments take precedence over the environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="TREBLLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Credentials (checked by the agent, not here)
    sdk_token: str = ""
    api_key: str = ""

    # Masking
    additional_masked_fields: list[str] = Field(default_factory=list)

    # Logging
    debug: bool = False
    debug_verbose: bool = False

    # Path filtering: plain strings, "/prefix/*" wildcards or compiled regexes
    exclude_paths: list[Any] = Field(default_factory=list)
    include_paths: list[Any] = Field(default_factory=list)

    # Enablement
    enabled: bool | None = None
    environments: bool | EnvironmentsPolicy | None = None

    # Payload size limits (bytes)
    max_payload_size: int = Field(default=DEFAULT_MAX_PAYLOAD_SIZE, gt=0)
    payload_warning_size: int = Field(default=DEFAULT_WARNING_PAYLOAD_SIZE, gt=0)
    enable_size_estimation: bool = True

    # Transport
    transport_timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)

    @field_validator("exclude_paths", "include_paths")
    @classmethod
    def validate_path_patterns(cls, value: list[Any]) -> list[Any]:
        for pattern in value:
            if not isinstance(pattern, (str, re.Pattern)):
                raise ValueError(
                    f"Path patterns must be strings or compiled regexes, got {type(pattern).__name__}"
                )
        return value

    def fingerprint(self) -> str:
        """Stable key identifying agents that would behave identically."""
        data = self.model_dump(
            include={
                "sdk_token",
                "api_key",
                "debug",
                "enabled",
                "environments",
                "additional_masked_fields",
                "exclude_paths",
                "include_paths",
            }
        )
        for key in ("exclude_paths", "include_paths"):
            data[key] = [
                f"re:{pattern.pattern}" if isinstance(pattern, re.Pattern) else pattern
                for pattern in data[key]
            ]
        return repr(sorted(data.items()))


@lru_cache
def get_settings() -> TreblleSettings:
    """Get cached settings loaded from the environment."""
    return TreblleSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (for testing)."""
    get_settings.cache_clear()
