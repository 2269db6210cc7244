# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Tests for the capture agent."""

from unittest.mock import MagicMock, patch

import pytest

from treblle_agent import (
    EnvironmentsPolicy,
    RequestDescriptor,
    ResponseDescriptor,
    Treblle,
    TreblleSettings,
    get_current_capture,
    record_error,
)
from treblle_agent.agent import activate_capture, reset_capture
from treblle_agent.core.constants import COLLECTOR_ENDPOINTS, STAGING_ENDPOINT
from treblle_agent.core.dispatcher import ThreadPoolDispatcher
from treblle_agent.errors import TreblleConfigurationError


def _raise(message: str) -> None:
    raise RuntimeError(message)


class TestConstruction:
    """Configuration and enablement."""

    def test_missing_sdk_token_is_inert(self, dispatcher):
        agent = Treblle(api_key="project-456", dispatcher=dispatcher)
        assert agent.enabled is False
        assert agent.begin("/users") is None

    def test_missing_api_key_is_inert(self, dispatcher, request_descriptor, response_descriptor):
        agent = Treblle(sdk_token="sdk-token-123", dispatcher=dispatcher)
        agent.capture(request_descriptor, response_descriptor)
        assert dispatcher.sent == []

    def test_missing_credentials_logged_in_debug(self):
        with patch("treblle_agent.agent.logger") as mock_logger:
            Treblle(api_key="project-456", debug=True)
            mock_logger.error.assert_called_once()
            assert mock_logger.error.call_args[0][0] == "treblle_error"

    def test_missing_credentials_silent_without_debug(self):
        with patch("treblle_agent.agent.logger") as mock_logger:
            Treblle(api_key="project-456")
            mock_logger.error.assert_not_called()

    def test_invalid_option_is_inert(self, dispatcher, request_descriptor, response_descriptor):
        """A value the settings reject disables the agent instead of raising."""
        agent = Treblle(sdk_token="t", api_key="k", max_payload_size=0, dispatcher=dispatcher)

        assert agent.enabled is False
        assert agent.begin("/users") is None
        agent.capture(request_descriptor, response_descriptor)
        assert dispatcher.sent == []

    def test_invalid_environment_value_is_inert(self, monkeypatch, dispatcher):
        monkeypatch.setenv("TREBLLE_DEBUG", "maybe")
        assert Treblle(sdk_token="t", api_key="k", dispatcher=dispatcher).enabled is False
        assert Treblle(dispatcher=dispatcher).enabled is False

    def test_invalid_option_logged_in_debug(self):
        with patch("treblle_agent.agent.logger") as mock_logger:
            Treblle(sdk_token="t", api_key="k", debug=True, transport_timeout_ms=-1)
            mock_logger.error.assert_called_once()
            assert mock_logger.error.call_args[1]["error_type"] == "ValidationError"

    def test_invalid_option_over_settings(self, dispatcher):
        settings = TreblleSettings(sdk_token="t", api_key="k")
        agent = Treblle(settings, payload_warning_size=0, dispatcher=dispatcher)
        assert agent.enabled is False
        assert agent.settings is settings

    def test_enabled_with_credentials(self, agent):
        assert agent.enabled is True
        assert agent.environment == "production"

    def test_explicit_enabled_flag_wins(self, dispatcher):
        agent = Treblle(
            sdk_token="t",
            api_key="k",
            enabled=True,
            environments=EnvironmentsPolicy(disabled=["production"]),
            environment="production",
            dispatcher=dispatcher,
        )
        assert agent.enabled is True

    def test_environment_policy_disables(self, dispatcher):
        agent = Treblle(
            sdk_token="t",
            api_key="k",
            environments={"disabled": ["test"]},
            environment="test",
            dispatcher=dispatcher,
        )
        assert agent.enabled is False

    def test_environment_detected(self, monkeypatch, dispatcher):
        monkeypatch.setenv("APP_ENV", "Staging")
        agent = Treblle(sdk_token="t", api_key="k", dispatcher=dispatcher)
        assert agent.environment == "staging"

    def test_settings_from_environment(self, monkeypatch, dispatcher):
        monkeypatch.setenv("TREBLLE_SDK_TOKEN", "env-token")
        monkeypatch.setenv("TREBLLE_API_KEY", "env-project")
        agent = Treblle(dispatcher=dispatcher)
        assert agent.enabled is True
        assert agent.settings.sdk_token == "env-token"

    def test_options_override_settings(self, dispatcher):
        settings = TreblleSettings(sdk_token="t", api_key="k", debug=False)
        agent = Treblle(settings, debug=True, dispatcher=dispatcher)
        assert agent.debug is True
        assert agent.settings.sdk_token == "t"
        assert settings.debug is False

    def test_dispatcher_created_lazily(self):
        agent = Treblle(sdk_token="t", api_key="k")
        assert agent._dispatcher is None
        dispatcher = agent.dispatcher
        assert isinstance(dispatcher, ThreadPoolDispatcher)
        assert agent.dispatcher is dispatcher
        dispatcher.shutdown()

    def test_build_payload_requires_configuration(self, request_descriptor, response_descriptor):
        agent = Treblle(api_key="k")
        with pytest.raises(TreblleConfigurationError):
            agent.build_payload(request_descriptor, response_descriptor)


class TestPathGating:
    def test_excluded_path(self, dispatcher):
        agent = Treblle(sdk_token="t", api_key="k", exclude_paths=["/health"], dispatcher=dispatcher)
        assert not agent.should_capture("/health/")
        assert agent.begin("/health") is None
        assert agent.begin("/users") is not None

    def test_include_paths(self, dispatcher):
        agent = Treblle(sdk_token="t", api_key="k", include_paths=["/api/*"], dispatcher=dispatcher)
        assert agent.should_capture("/api/users/")
        assert not agent.should_capture("/admin")
        assert agent.should_capture("/api/users")


class TestCapture:
    """Payload build and dispatch."""

    def test_dispatches_payload(self, agent, dispatcher, request_descriptor, response_descriptor):
        agent.capture(request_descriptor, response_descriptor)

        assert len(dispatcher.sent) == 1
        options = dispatcher.sent[0]
        assert options.endpoint in COLLECTOR_ENDPOINTS
        assert options.sdk_token == "sdk-token-123"
        assert options.timeout_ms == 5000
        assert options.payload["project_id"] == "project-456"
        assert options.payload["data"]["request"]["body"]["password"] == "*********"

    def test_staging_endpoint(self, dispatcher, request_descriptor, response_descriptor):
        agent = Treblle(sdk_token="t", api_key="k", environment="staging", dispatcher=dispatcher)
        agent.capture(request_descriptor, response_descriptor)
        assert dispatcher.sent[0].endpoint == STAGING_ENDPOINT

    def test_non_https_endpoint_rejected(self, agent, dispatcher, request_descriptor, response_descriptor):
        with patch("treblle_agent.agent.select_endpoint", return_value="http://collector.local"):
            agent.capture(request_descriptor, response_descriptor)
        assert dispatcher.sent == []

    def test_dispatch_failure_never_raises(self, request_descriptor, response_descriptor):
        failing = MagicMock()
        failing.dispatch.side_effect = RuntimeError("executor gone")
        agent = Treblle(sdk_token="t", api_key="k", environment="production", dispatcher=failing)

        agent.capture(request_descriptor, response_descriptor)
        failing.dispatch.assert_called_once()

    def test_disabled_agent_does_not_dispatch(self, dispatcher, request_descriptor, response_descriptor):
        agent = Treblle(sdk_token="t", api_key="k", enabled=False, dispatcher=dispatcher)
        agent.capture(request_descriptor, response_descriptor)
        assert dispatcher.sent == []


class TestRequestCapture:
    """Per-request capture state."""

    def test_finish_fills_timing(self, agent, dispatcher):
        capture = agent.begin("/users")
        request = RequestDescriptor(timestamp="", method="GET", url="https://api.example.com/users")
        response = ResponseDescriptor(code=200, body={"ok": True})

        capture.finish(request, response)

        assert request.timestamp == capture.timestamp
        assert response.load_time > 0
        payload = dispatcher.payloads[0]
        assert payload["data"]["request"]["timestamp"] == capture.timestamp

    def test_records_errors(self, agent, dispatcher):
        capture = agent.begin("/users")
        try:
            _raise("boom")
        except RuntimeError as exc:
            record = capture.record_error(exc)

        assert record.message == "boom"
        assert record.file == "test_agent.py"
        assert record.line > 0

        capture.finish(
            RequestDescriptor(timestamp="", method="GET", url="https://api.example.com/users"),
            ResponseDescriptor(code=500),
        )
        errors = dispatcher.payloads[0]["data"]["errors"]
        assert errors == [record.model_dump()]

    def test_record_error_uses_active_capture(self, agent):
        capture = agent.begin("/users")
        token = activate_capture(capture)
        try:
            assert get_current_capture() is capture
            record_error(ValueError("bad input"))
        finally:
            reset_capture(token)

        assert get_current_capture() is None
        assert [error.message for error in capture.errors] == ["bad input"]

    def test_record_error_without_capture(self):
        assert record_error(ValueError("ignored")) is None

    def test_error_without_traceback(self, agent):
        record = agent.format_error(KeyError())
        assert record.file == "unknown"
        assert record.line == 0
        assert record.message == "KeyError"
