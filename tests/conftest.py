# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Pytest configuration and shared fixtures."""

import os

import pytest

from treblle_agent import RequestDescriptor, ResponseDescriptor, Treblle
from treblle_agent.config import clear_settings_cache
from treblle_agent.core.environment import ENVIRONMENT_VARIABLES
from treblle_agent.core.transport import SendOptions

ISOLATED_ENV = ENVIRONMENT_VARIABLES + (
    "AWS_REGION",
    "AWS_LAMBDA_FUNCTION_NAME",
    "AZURE_FUNCTIONS_ENVIRONMENT",
)


class RecordingDispatcher:
    """Dispatcher that keeps sends in memory instead of delivering them."""

    def __init__(self):
        self.sent: list[SendOptions] = []

    def dispatch(self, options: SendOptions) -> None:
        self.sent.append(options)

    @property
    def payloads(self) -> list[dict]:
        return [options.payload for options in self.sent]


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch, tmp_path):
    """Isolate tests from the host environment and the settings cache."""
    for name in list(os.environ):
        if name.startswith("TREBLLE_") or name in ISOLATED_ENV:
            monkeypatch.delenv(name, raising=False)
    # Keep a stray .env file from leaking into settings
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def agent(dispatcher) -> Treblle:
    """Enabled agent that records payloads instead of sending them."""
    return Treblle(
        sdk_token="sdk-token-123",
        api_key="project-456",
        environment="production",
        dispatcher=dispatcher,
    )


@pytest.fixture
def request_descriptor() -> RequestDescriptor:
    return RequestDescriptor(
        timestamp="2026-01-15 10:30:00",
        method="POST",
        url="https://api.example.com/users?page=1",
        ip="10.0.0.1",
        route_path="/users",
        user_agent="test-client/1.0",
        headers={"content-type": "application/json", "authorization": "Bearer abc"},
        query={"page": "1"},
        body={"user": "a", "password": "secret123"},
    )


@pytest.fixture
def response_descriptor() -> ResponseDescriptor:
    return ResponseDescriptor(
        code=201,
        headers={"content-type": "application/json"},
        body={"id": 1, "user": "a"},
        load_time=1250.0,
    )
