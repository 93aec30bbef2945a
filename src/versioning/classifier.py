"""Classify a resolved version against a VersionRule.

Package rules and tool rules share this single code path.
"""

from __future__ import annotations

from .compare import compare_versions, normalize_version, strip_prerelease
from .models import ClassificationStatus, ResolvedVersion, VersionRule


def in_vulnerable_range(version: str, rule: VersionRule) -> bool:
    """Return True if ``version`` falls inside any inclusive range of ``rule``."""
    base = strip_prerelease(version)
    for rng in rule.vulnerable_ranges:
        if not rng.min or not rng.max:
            continue
        low = strip_prerelease(rng.min)
        high = strip_prerelease(rng.max)
        if compare_versions(low, base) <= 0 <= compare_versions(high, base):
            return True
    return False


def above_threshold(version: str, threshold: str) -> bool:
    """Return True if ``version`` is strictly greater than ``threshold``.

    Equality is not vulnerable.
    """
    return compare_versions(strip_prerelease(version), strip_prerelease(threshold)) > 0


def classify(resolved: ResolvedVersion, rule: VersionRule) -> ClassificationStatus:
    """Apply ``rule`` to ``resolved``.

    Order: not found, patched (terminal), exact vulnerable, ranges,
    minimum threshold, safe.
    """
    version = normalize_version(resolved.version)
    if version is None:
        return ClassificationStatus.NOT_FOUND

    if version in rule.patched_versions:
        return ClassificationStatus.PATCHED
    if version in rule.vulnerable_versions:
        return ClassificationStatus.VULNERABLE
    if rule.vulnerable_ranges and in_vulnerable_range(version, rule):
        return ClassificationStatus.VULNERABLE
    if rule.min_vulnerable and above_threshold(version, rule.min_vulnerable):
        return ClassificationStatus.VULNERABLE
    return ClassificationStatus.SAFE
