"""Global package cache / store lookup for npm, yarn and pnpm.

These scans walk machine-wide directories and are comparatively expensive.
Callers gate them; this module bounds them by depth and by number of files
inspected.
"""

from __future__ import annotations

import logging
import os
import sys
from functools import cmp_to_key
from typing import Callable, Dict, Iterator, List, Optional

from constants import Constants, PackageManagerKind
from common.logging_utils import Timer, extra_context, is_debug_enabled
from common.process import run_command
from versioning.compare import compare_versions
from .manifest import manifest_version, read_json_file, read_manifest

logger = logging.getLogger(__name__)

_CACHE_QUERIES = {
    PackageManagerKind.NPM: ["npm", "config", "get", "cache"],
    PackageManagerKind.YARN: ["yarn", "cache", "dir"],
    PackageManagerKind.PNPM: ["pnpm", "store", "path"],
}


def _os_class() -> str:
    if sys.platform == "darwin":
        return "darwin"
    if sys.platform.startswith("win"):
        return "windows"
    return "other"


def _default_cache_table(home: str) -> Dict[str, Dict[PackageManagerKind, str]]:
    local_app_data = os.environ.get("LOCALAPPDATA") or os.path.join(home, "AppData", "Local")
    return {
        "darwin": {
            PackageManagerKind.NPM: os.path.join(home, ".npm"),
            PackageManagerKind.YARN: os.path.join(home, "Library", "Caches", "Yarn"),
            PackageManagerKind.PNPM: os.path.join(home, "Library", "pnpm", "store"),
        },
        "windows": {
            PackageManagerKind.NPM: os.path.join(local_app_data, "npm-cache"),
            PackageManagerKind.YARN: os.path.join(local_app_data, "Yarn", "Cache"),
            PackageManagerKind.PNPM: os.path.join(local_app_data, "pnpm", "store"),
        },
        "other": {
            PackageManagerKind.NPM: os.path.join(home, ".npm"),
            PackageManagerKind.YARN: os.path.join(home, ".yarn", "cache"),
            PackageManagerKind.PNPM: os.path.join(home, ".pnpm-store"),
        },
    }


def default_cache_dir(kind: PackageManagerKind) -> Optional[str]:
    """Platform-convention cache/store location for ``kind``."""
    table = _default_cache_table(os.path.expanduser("~"))
    return table[_os_class()].get(kind)


def get_global_cache_dir(kind: PackageManagerKind) -> Optional[str]:
    """Locate the global cache/store root of ``kind``.

    The manager's own executable is asked first; if it is absent, fails,
    times out or answers nothing useful, the platform default is used.
    """
    query = _CACHE_QUERIES.get(kind)
    if query is None:
        return None
    reported = run_command(query)
    if reported:
        reported = reported.splitlines()[-1].strip()
    if reported and reported != "undefined":
        return reported
    return default_cache_dir(kind)


def _iter_manifests(base: str) -> Iterator[str]:
    """Yield package.json paths under ``base`` within the depth and file budgets."""
    inspected = 0
    base_depth = base.rstrip(os.sep).count(os.sep)
    for current, dirs, files in os.walk(base):
        depth = current.count(os.sep) - base_depth
        dirs.sort()
        if depth >= Constants.GLOBAL_SCAN_MAX_DEPTH:
            dirs[:] = []
        inspected += len(files)
        if Constants.PACKAGE_JSON_FILE in files:
            yield os.path.join(current, Constants.PACKAGE_JSON_FILE)
        if inspected >= Constants.GLOBAL_SCAN_MAX_FILES:
            logger.debug("Global cache scan budget exhausted under %s", base)
            return


def _scan_for_named_manifest(package: str, base: str) -> Optional[str]:
    for path in _iter_manifests(base):
        version = manifest_version(read_json_file(path), package)
        if version:
            return version
    return None


def _unscoped(package: str) -> str:
    return package.split("/", 1)[1] if package.startswith("@") and "/" in package else package


def _resolve_npm(package: str, cache_dir: str) -> Optional[str]:
    cacache = os.path.join(cache_dir, "_cacache")
    if os.path.isdir(cacache):
        version = _scan_for_named_manifest(package, cacache)
        if version:
            return version

    # Legacy layout: <cache>/<name>/<version>/[package/]package.json
    legacy = os.path.join(cache_dir, _unscoped(package))
    try:
        versions = [e.name for e in os.scandir(legacy) if e.is_dir()]
    except OSError:
        return None
    for candidate in _sorted_desc(versions):
        for sub in (candidate, os.path.join(candidate, "package")):
            version = manifest_version(read_manifest(os.path.join(legacy, sub)))
            if version:
                return version
    return None


def _sorted_desc(versions: List[str]) -> List[str]:
    return sorted(versions, key=cmp_to_key(compare_versions), reverse=True)


def _resolve_yarn(package: str, cache_dir: str) -> Optional[str]:
    """Directory-name heuristic: cache folders are named after the package."""
    needle = _unscoped(package).replace("/", "-")
    inspected = 0
    base_depth = cache_dir.rstrip(os.sep).count(os.sep)
    for current, dirs, files in os.walk(cache_dir):
        depth = current.count(os.sep) - base_depth
        dirs.sort()
        inspected += len(files) + len(dirs)
        for d in dirs:
            if needle not in d:
                continue
            candidate = os.path.join(current, d)
            nested = os.path.join(candidate, Constants.NODE_MODULES_DIR, *package.split("/"))
            for location in (candidate, nested):
                data = read_manifest(location)
                if data and data.get("name") not in (None, package):
                    continue
                version = manifest_version(data)
                if version:
                    return version
        if depth >= Constants.GLOBAL_SCAN_MAX_DEPTH or inspected >= Constants.GLOBAL_SCAN_MAX_FILES:
            dirs[:] = []
            if inspected >= Constants.GLOBAL_SCAN_MAX_FILES:
                break
    return None


def _resolve_pnpm(package: str, store_dir: str) -> Optional[str]:
    return _scan_for_named_manifest(package, store_dir)


_RESOLVERS: Dict[PackageManagerKind, Callable[[str, str], Optional[str]]] = {
    PackageManagerKind.NPM: _resolve_npm,
    PackageManagerKind.YARN: _resolve_yarn,
    PackageManagerKind.PNPM: _resolve_pnpm,
}


def resolve_global_version(package: str, kind: PackageManagerKind) -> Optional[str]:
    """Search the global cache/store of ``kind`` for ``package``.

    UNKNOWN tries npm, yarn and pnpm in that order.

    Args:
        package: Package name, scoped or not.
        kind: Package manager whose cache should be searched.

    Returns:
        First matching version, or None.
    """
    if kind is PackageManagerKind.UNKNOWN:
        kinds = [PackageManagerKind.NPM, PackageManagerKind.YARN, PackageManagerKind.PNPM]
    else:
        kinds = [kind]
    for k in kinds:
        cache_dir = get_global_cache_dir(k)
        if not cache_dir or not os.path.isdir(cache_dir):
            continue
        with Timer() as t:
            version = _RESOLVERS[k](package, cache_dir)
        if is_debug_enabled(logger):
            logger.debug(
                "Global cache scanned",
                extra=extra_context(
                    event="global_cache_scan",
                    component="global_cache",
                    target=cache_dir,
                    outcome="hit" if version else "miss",
                    duration_ms=t.duration_ms(),
                ),
            )
        if version:
            return version
    return None
