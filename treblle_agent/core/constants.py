# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Constants shared by the capture pipeline."""

SDK_NAME = "python"
SDK_VERSION = "1.0.0"

# Collector pool; one endpoint is picked at random per send
COLLECTOR_ENDPOINTS: tuple[str, ...] = (
    "https://rocknrolla.treblle.com",
    "https://punisher.treblle.com",
    "https://sicario.treblle.com",
)

STAGING_ENDPOINT = "https://gateway-v3-dev.treblle.com"
STAGING_ENVIRONMENT = "staging"

DEFAULT_TIMEOUT_MS = 5000

DEFAULT_MAX_PAYLOAD_SIZE = 5 * 1024 * 1024  # 5 MiB
DEFAULT_WARNING_PAYLOAD_SIZE = 2 * 1024 * 1024  # 2 MiB

MAX_MASK_DEPTH = 10

DEFAULT_MASKED_FIELDS: tuple[str, ...] = (
    "password",
    "pwd",
    "secret",
    "password_confirmation",
    "passwordConfirmation",
    "cc",
    "card_number",
    "cardNumber",
    "ccv",
    "ssn",
    "credit_score",
    "creditScore",
    "api_key",
    # Auth and session tokens
    "authorization",
    "cookie",
    "set-cookie",
    "x-api-key",
    "x-auth-token",
    "access_token",
    "refresh_token",
    "id_token",
    "session",
    "jwt",
    "token",
)

# Keys that usually carry uploaded files in request bodies
FILE_CARRIER_KEYS: frozenset[str] = frozenset(
    {"file", "files", "buffer", "image", "document", "attachment", "upload"}
)
