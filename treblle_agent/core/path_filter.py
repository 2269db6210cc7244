# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Include/exclude path filtering."""

import re
from collections.abc import Sequence
from typing import Union

PathPattern = Union[str, re.Pattern]


def _strip_trailing_slash(value: str) -> str:
    return value[:-1] if value.endswith("/") else value


def matches_pattern(path: str, pattern: PathPattern) -> bool:
    """Match ``path`` against a regex, an exact path or a ``prefix*`` wildcard."""
    if isinstance(pattern, re.Pattern):
        return pattern.search(path) is not None

    if not isinstance(pattern, str):
        return False

    normalized_path = _strip_trailing_slash(path)
    normalized_pattern = _strip_trailing_slash(pattern)

    if normalized_path == normalized_pattern:
        return True

    if normalized_pattern.endswith("*"):
        return normalized_path.startswith(normalized_pattern[:-1])

    return False


def is_path_excluded(path: str, exclude_patterns: Sequence[PathPattern]) -> bool:
    return any(matches_pattern(path, pattern) for pattern in exclude_patterns)


def is_path_included(path: str, include_patterns: Sequence[PathPattern]) -> bool:
    if not include_patterns:
        return True
    return any(matches_pattern(path, pattern) for pattern in include_patterns)


def should_capture_path(
    path: str,
    exclude_patterns: Sequence[PathPattern] = (),
    include_patterns: Sequence[PathPattern] = (),
) -> bool:
    """Exclusion wins; an empty include list includes everything else."""
    if is_path_excluded(path, exclude_patterns):
        return False
    return is_path_included(path, include_patterns)
