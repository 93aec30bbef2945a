"""Monorepo workspace discovery (npm/yarn "workspaces", pnpm-workspace.yaml)."""

from __future__ import annotations

import fnmatch
import logging
import os
from typing import Iterable, List

import yaml

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled
from .manifest import read_manifest

logger = logging.getLogger(__name__)

_SKIP_DIRS = set([Constants.NODE_MODULES_DIR] + Constants.VCS_DIRS)


def _subdirs(path: str) -> List[str]:
    try:
        with os.scandir(path) as it:
            names = sorted(
                e.name for e in it
                if e.name not in _SKIP_DIRS and e.is_dir()
            )
    except OSError:
        return []
    return [os.path.join(path, n) for n in names]


def _normalize_pattern(pattern) -> List[str]:
    """Turn a workspace glob into path segments; [] when unusable or negated."""
    if not isinstance(pattern, str):
        return []
    p = pattern.strip().replace("\\", "/")
    if not p or p.startswith("!") or p.startswith("/"):
        return []
    segments = [s for s in p.split("/") if s and s != "."]
    if ".." in segments:
        return []
    return segments


def _walk_pattern(current: str, segments: List[str], depth: int, out: List[str]) -> None:
    if not segments:
        out.append(current)
        return
    head, rest = segments[0], segments[1:]
    if head == "**":
        _walk_pattern(current, rest, depth, out)
        if depth < Constants.WORKSPACE_PATTERN_MAX_DEPTH:
            for child in _subdirs(current):
                _walk_pattern(child, segments, depth + 1, out)
        return
    if depth >= Constants.WORKSPACE_PATTERN_MAX_DEPTH:
        return
    for child in _subdirs(current):
        if fnmatch.fnmatchcase(os.path.basename(child), head):
            _walk_pattern(child, rest, depth + 1, out)


def expand_workspace_pattern(root: str, pattern) -> List[str]:
    """Resolve one workspace pattern to member directories that hold a manifest.

    ``*`` matches a single path segment and ``**`` any number of segments;
    matching never descends more than three levels below ``root``.
    """
    segments = _normalize_pattern(pattern)
    if not segments:
        return []
    matches: List[str] = []
    _walk_pattern(root, segments, 0, matches)
    return [
        m for m in matches
        if os.path.isfile(os.path.join(m, Constants.PACKAGE_JSON_FILE))
    ]


def _manifest_patterns(root: str) -> List[str]:
    data = read_manifest(root)
    if not data:
        return []
    workspaces = data.get("workspaces")
    if isinstance(workspaces, dict):
        workspaces = workspaces.get("packages")
    if not isinstance(workspaces, list):
        return []
    return [w for w in workspaces if isinstance(w, str)]


def _pnpm_patterns(root: str) -> List[str]:
    path = os.path.join(root, Constants.PNPM_WORKSPACE_FILE)
    if not os.path.isfile(path):
        return []
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        logger.debug("Skipping unreadable %s: %s", path, e)
        return []
    packages = data.get("packages") if isinstance(data, dict) else None
    if not isinstance(packages, list):
        return []
    return [p for p in packages if isinstance(p, str)]


def _discover_manifest_dirs(root: str) -> List[str]:
    """Fallback: parents of every package.json a few levels below ``root``."""
    found: List[str] = []
    for current, dirs, files in os.walk(root):
        rel = os.path.relpath(current, root)
        depth = 0 if rel == os.curdir else rel.count(os.sep) + 1
        dirs[:] = sorted(d for d in dirs if d not in _SKIP_DIRS)
        if depth >= Constants.WORKSPACE_FALLBACK_MAX_DEPTH - 1:
            dirs[:] = []
        if Constants.PACKAGE_JSON_FILE in files:
            found.append(current)
            if len(found) >= Constants.WORKSPACE_FALLBACK_MAX_RESULTS:
                break
    return found


def _ordered(root: str, members: Iterable[str]) -> List[str]:
    others = sorted({os.path.abspath(m) for m in members} - {root})
    return [root] + others


def find_workspace_dirs(root_dir: str) -> List[str]:
    """Enumerate the workspace members of ``root_dir``, root first.

    Declared workspaces (package.json "workspaces" and pnpm-workspace.yaml)
    are used when present; only when they yield nothing is every manifest
    directory under the root taken instead.

    Args:
        root_dir: Scan root.

    Returns:
        De-duplicated absolute directories; the root is always the first entry.
    """
    root = os.path.abspath(root_dir)
    members: List[str] = []
    for pattern in _manifest_patterns(root) + _pnpm_patterns(root):
        members.extend(expand_workspace_pattern(root, pattern))

    if not members:
        members = _discover_manifest_dirs(root)

    result = _ordered(root, members)
    if is_debug_enabled(logger):
        logger.debug(
            "Workspace members resolved",
            extra=extra_context(
                event="workspace_discovery",
                component="workspaces",
                target=root,
                count=len(result),
            ),
        )
    return result
