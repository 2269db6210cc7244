# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Tests for agent settings."""

import re

import pytest
from pydantic import ValidationError

from treblle_agent.config import EnvironmentsPolicy, TreblleSettings, clear_settings_cache, get_settings


class TestTreblleSettings:
    def test_defaults(self):
        settings = TreblleSettings()
        assert settings.sdk_token == ""
        assert settings.api_key == ""
        assert settings.debug is False
        assert settings.enabled is None
        assert settings.environments is None
        assert settings.max_payload_size == 5 * 1024 * 1024
        assert settings.payload_warning_size == 2 * 1024 * 1024
        assert settings.transport_timeout_ms == 5000

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("TREBLLE_SDK_TOKEN", "env-token")
        monkeypatch.setenv("TREBLLE_DEBUG", "true")
        monkeypatch.setenv("TREBLLE_ADDITIONAL_MASKED_FIELDS", '["pin", "otp"]')
        settings = TreblleSettings()
        assert settings.sdk_token == "env-token"
        assert settings.debug is True
        assert settings.additional_masked_fields == ["pin", "otp"]

    def test_environments_policy_from_environment(self, monkeypatch):
        monkeypatch.setenv("TREBLLE_ENVIRONMENTS", '{"disabled": ["test"]}')
        settings = TreblleSettings()
        assert isinstance(settings.environments, EnvironmentsPolicy)
        assert settings.environments.disabled == ["test"]

    def test_regex_path_patterns(self):
        settings = TreblleSettings(exclude_paths=["/health", re.compile(r"^/internal")])
        assert isinstance(settings.exclude_paths[1], re.Pattern)

    def test_invalid_path_pattern(self):
        with pytest.raises(ValidationError):
            TreblleSettings(include_paths=[42])

    def test_invalid_size(self):
        with pytest.raises(ValidationError):
            TreblleSettings(max_payload_size=0)

    def test_fingerprint(self):
        first = TreblleSettings(sdk_token="t", exclude_paths=[re.compile("/x")])
        second = TreblleSettings(sdk_token="t", exclude_paths=[re.compile("/x")])
        third = TreblleSettings(sdk_token="t", exclude_paths=["/x"])
        assert first.fingerprint() == second.fingerprint()
        assert first.fingerprint() != third.fingerprint()


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_cache_cleared(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("TREBLLE_API_KEY", "changed")
        clear_settings_cache()
        second = get_settings()
        assert second is not first
        assert second.api_key == "changed"
