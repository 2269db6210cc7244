# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Capture pipeline: masking, size guard, gating, payload building and transport."""
