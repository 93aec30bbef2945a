"""Dotted-numeric version ordering and normalization helpers.

This is intentionally not a semantic-version implementation: pre-release
identifiers are removed before comparison rather than ordered.
"""

from __future__ import annotations

import re
from typing import List, Optional

_LEADING_DIGITS = re.compile(r"^(\d+)")
_RANGE_OPERATORS = "^~>=<"


def normalize_version(raw: Optional[str]) -> Optional[str]:
    """Strip leading range operators and a leading 'v' from a version string.

    Returns None when nothing usable remains.
    """
    if raw is None:
        return None
    value = str(raw).strip().lstrip(_RANGE_OPERATORS).strip()
    if value[:1] in ("v", "V"):
        value = value[1:]
    return value or None


def strip_prerelease(version: str) -> str:
    """Drop everything from the first '-' (pre-release suffix)."""
    return version.split("-", 1)[0]


def _components(version: str) -> List[int]:
    core = version.split("+", 1)[0]
    parts: List[int] = []
    for piece in core.split("."):
        m = _LEADING_DIGITS.match(piece.strip())
        parts.append(int(m.group(1)) if m else 0)
    return parts


def compare_versions(left: str, right: str) -> int:
    """Compare two dotted versions component by component.

    The shorter sequence is padded with zeros, so "1.2" == "1.2.0".

    Returns:
        -1 if left < right, 0 if equal, 1 if left > right.
    """
    a = _components(left)
    b = _components(right)
    width = max(len(a), len(b))
    a.extend([0] * (width - len(a)))
    b.extend([0] * (width - len(b)))
    for x, y in zip(a, b):
        if x != y:
            return -1 if x < y else 1
    return 0
