"""Scan orchestration: resolve installed versions, classify them, aggregate outcomes.

Resolution priority is fixed:
    root lockfile -> workspace lockfiles -> root node_modules ->
    workspace node_modules -> global cache (gated) -> root manifest spec
The first source that yields a version wins.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from constants import PackageManagerKind
from common.logging_utils import Timer, extra_context, is_debug_enabled
from registry.npm import global_cache, installed, lockfile_parser, tools
from registry.npm.detect import detect_package_manager
from registry.npm.manifest import declared_spec
from registry.npm.workspaces import find_workspace_dirs
from versioning.classifier import classify
from versioning.models import (
    NOT_RESOLVED,
    ClassificationResult,
    IndicatorFinding,
    ResolutionSource,
    ResolvedVersion,
    ScanSummary,
    SubjectKind,
    ThreatDefinition,
    ThreatOutcome,
    VersionRule,
)
from . import indicators

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanOptions:
    """Per-run switches."""
    check_global_cache: bool = False
    verbose: bool = False
    max_workers: int = 1
    check_indicators: bool = True


def should_check_global(threat: ThreatDefinition, options: ScanOptions) -> bool:
    """Global caches are searched only when the run, the threat or verbose mode asks for it."""
    return options.check_global_cache or threat.check_global_cache or options.verbose


def resolve_package_version(
    package: str,
    root: str,
    kind: PackageManagerKind,
    workspace_dirs: Sequence[str],
    allow_global: bool = False,
) -> ResolvedVersion:
    """Resolve the installed version of ``package`` for the project at ``root``.

    Args:
        package: Package name.
        root: Absolute scan root.
        kind: Package manager detected for ``root``.
        workspace_dirs: Workspace members (root first, as returned by find_workspace_dirs).
        allow_global: Whether the global cache/store may be scanned.

    Returns:
        ResolvedVersion; NOT_RESOLVED when every source misses.
    """
    members = [d for d in workspace_dirs if os.path.abspath(d) != root]

    version = lockfile_parser.extract_version_from_lockfile(package, root, kind)
    if version:
        return ResolvedVersion(version, ResolutionSource.ROOT_LOCK)

    for member in members:
        version = lockfile_parser.extract_version_from_lockfile(
            package, member, PackageManagerKind.UNKNOWN
        )
        if version:
            return ResolvedVersion(version, ResolutionSource.WORKSPACE_LOCK)

    version = installed.extract_version_installed(package, root)
    if version:
        return ResolvedVersion(version, ResolutionSource.ROOT_INSTALL)

    for member in members:
        version = installed.extract_version_installed(package, member)
        if version:
            return ResolvedVersion(version, ResolutionSource.WORKSPACE_INSTALL)

    if allow_global:
        version = global_cache.resolve_global_version(package, kind)
        if version:
            return ResolvedVersion(version, ResolutionSource.GLOBAL_CACHE)

    version = declared_spec(package, root)
    if version:
        return ResolvedVersion(version, ResolutionSource.MANIFEST)
    return NOT_RESOLVED


def _map_ordered(func: Callable, items: List, max_workers: int) -> List:
    """Apply ``func`` to ``items`` keeping input order, optionally on a thread pool."""
    if max_workers <= 1 or len(items) <= 1:
        return [func(item) for item in items]
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(func, items))


def check_packages(
    rules: Dict[str, VersionRule], root: str, allow_global: bool, options: ScanOptions
) -> List[ClassificationResult]:
    """Resolve and classify every ruled package for ``root``."""
    if not rules:
        return []
    kind = detect_package_manager(root)
    workspace_dirs = find_workspace_dirs(root)
    if options.verbose:
        if kind is not PackageManagerKind.UNKNOWN:
            logger.info("Detected package manager: %s", kind.value)
        if len(workspace_dirs) > 1:
            logger.info("Detected monorepo with %d workspace(s)", len(workspace_dirs) - 1)

    def _check(package: str) -> ClassificationResult:
        resolved = resolve_package_version(package, root, kind, workspace_dirs, allow_global)
        return ClassificationResult(package, resolved, classify(resolved, rules[package]))

    return _map_ordered(_check, list(rules), options.max_workers)


def check_tools(rules: Dict[str, VersionRule], options: ScanOptions) -> List[ClassificationResult]:
    """Query and classify every ruled runtime tool."""

    def _check(tool: str) -> ClassificationResult:
        version = tools.get_tool_version(tool)
        resolved = ResolvedVersion(version, ResolutionSource.TOOL) if version else NOT_RESOLVED
        return ClassificationResult(tool, resolved, classify(resolved, rules[tool]), SubjectKind.TOOL)

    return _map_ordered(_check, list(rules), options.max_workers)


def check_indicators(threat: ThreatDefinition, root: str) -> List[IndicatorFinding]:
    """Run the file, directory, string and process checks of ``threat``."""
    findings: List[IndicatorFinding] = []
    findings.extend(indicators.check_file_patterns(root, threat.file_patterns))
    findings.extend(indicators.check_directory_patterns(root, threat.directory_patterns))
    findings.extend(indicators.check_string_markers(root, threat.string_markers))
    findings.extend(indicators.check_process_patterns(threat.process_patterns))
    return findings


def scan_threat(
    threat: ThreatDefinition, scan_root: str, options: Optional[ScanOptions] = None
) -> ThreatOutcome:
    """Scan one root for one threat."""
    options = options or ScanOptions()
    root = os.path.abspath(scan_root)
    outcome = ThreatOutcome(threat=threat.id, name=threat.display_name, scan_root=root)
    with Timer() as t:
        outcome.results.extend(
            check_packages(threat.package_rules, root, should_check_global(threat, options), options)
        )
        outcome.results.extend(check_tools(threat.tool_rules, options))
        if options.check_indicators:
            outcome.findings.extend(check_indicators(threat, root))
    if is_debug_enabled(logger):
        logger.debug(
            "Threat scanned",
            extra=extra_context(
                event="threat_scan",
                component="scanner",
                action=threat.id,
                target=root,
                outcome="triggered" if outcome.triggered else "clean",
                count=len(outcome.results),
                duration_ms=t.duration_ms(),
            ),
        )
    return outcome


def _normalized_roots(scan_roots: Iterable[str]) -> List[str]:
    roots: List[str] = []
    for raw in scan_roots:
        path = os.path.abspath(os.path.expanduser(raw))
        if path in roots:
            continue
        if not os.path.isdir(path):
            logger.warning("Directory not found: %s", raw)
            continue
        roots.append(path)
    return roots


def run_scan(
    threats: Sequence[ThreatDefinition],
    scan_roots: Iterable[str],
    options: Optional[ScanOptions] = None,
    config_errors: Optional[Dict[str, str]] = None,
    on_outcome: Optional[Callable[[ThreatOutcome, ThreatDefinition], None]] = None,
) -> ScanSummary:
    """Scan every root for every threat and fold the outcomes into a ScanSummary.

    A threat with ``scan_home`` set is additionally scanned against the home
    directory when the root is not already the home directory. Lockfile
    parses are shared by every threat of the run.
    """
    options = options or ScanOptions()
    summary = ScanSummary(config_errors=dict(config_errors or {}))
    home = os.path.abspath(os.path.expanduser("~"))
    lockfile_parser.clear_lockfile_cache()

    for root in _normalized_roots(scan_roots):
        if root == home or root.startswith(home + os.sep):
            logger.warning("Scanning home directory - this may take a while")
        logger.info("Scanning: %s", root)
        for threat in threats:
            targets = [root]
            if threat.scan_home and root != home and os.path.isdir(home):
                if options.verbose:
                    logger.info("Threat %s requires a home directory scan", threat.id)
                targets.append(home)
            for target in targets:
                outcome = scan_threat(threat, target, options)
                summary.outcomes.append(outcome)
                if on_outcome is not None:
                    on_outcome(outcome, threat)
    return summary
