"""Lockfile version extractors for the npm ecosystem (package-lock.json, yarn.lock, pnpm-lock.yaml).

Each extractor answers one question: which version of a given package does the
lockfile pin? All of them return None for a missing or unreadable file, a
malformed document or a package that is not present; none of them raise.

A lockfile is parsed once per (path, mtime, size) and kept in a small
in-process cache, so looking up many packages costs one parse per file.
"""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from typing import Any, Dict, Iterator, List, Optional, Tuple

import yaml

from constants import Constants, PackageManagerKind
from .detect import LOCKFILE_NAMES

logger = logging.getLogger(__name__)

_LOCKFILE_CACHE_SIZE = 64

Stamp = Tuple[int, int]


def _clean(value: Any) -> Optional[str]:
    """Return a stripped non-empty string or None."""
    if isinstance(value, str):
        value = value.strip().strip('"').strip("'").strip()
        if value:
            return value
    return None


def _unscoped(package: str) -> str:
    """"@scope/name" -> "name"; unscoped names are returned unchanged."""
    if package.startswith("@") and "/" in package:
        return package.split("/", 1)[1]
    return package


def _file_stamp(path: str) -> Optional[Stamp]:
    """(mtime_ns, size) of ``path``, or None when it cannot be stat'ed."""
    try:
        st = os.stat(path)
    except OSError:
        return None
    return st.st_mtime_ns, st.st_size


def _read_text(path: str, label: str) -> Optional[str]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Failed to read %s %s: %s", label, path, e)
        return None


# ---------- package-lock.json ----------


@lru_cache(maxsize=_LOCKFILE_CACHE_SIZE)
def _load_package_lock(path: str, stamp: Stamp) -> Optional[Dict[str, Any]]:  # pylint: disable=unused-argument
    content = _read_text(path, "package-lock.json")
    if content is None:
        return None
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.debug("Failed to parse package-lock.json %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else None


def _version_from_packages_map(package: str, packages: Dict[str, Any]) -> Optional[str]:
    """Look up ``node_modules/<pkg>`` first, then nested ``.../node_modules/<pkg>``."""
    entry = packages.get(f"{Constants.NODE_MODULES_DIR}/{package}")
    if isinstance(entry, dict):
        version = _clean(entry.get("version"))
        if version:
            return version

    nested_suffix = f"/{Constants.NODE_MODULES_DIR}/{package}"
    for path, meta in packages.items():
        if isinstance(path, str) and path.endswith(nested_suffix) and isinstance(meta, dict):
            version = _clean(meta.get("version"))
            if version:
                return version
    return None


def _version_from_dependencies_map(package: str, deps: Dict[str, Any]) -> Optional[str]:
    """Walk a legacy ``dependencies`` tree keyed by name, top level first."""
    queue: List[Dict[str, Any]] = [deps]
    while queue:
        level = queue.pop(0)
        entry = level.get(package)
        if isinstance(entry, dict):
            version = _clean(entry.get("version"))
            if version:
                return version
        for meta in level.values():
            if isinstance(meta, dict) and isinstance(meta.get("dependencies"), dict):
                queue.append(meta["dependencies"])
    return None


def extract_version_npm(package: str, lockfile_path: str) -> Optional[str]:
    """Extract the locked version of ``package`` from package-lock.json.

    lockfileVersion 2 and 3 carry a flat ``packages`` map keyed by install
    path; lockfileVersion 1 (and v2 for backwards compatibility) carries a
    nested ``dependencies`` map keyed by package name.

    Args:
        package: Package name, scoped or not.
        lockfile_path: Path to package-lock.json.

    Returns:
        Version string or None.
    """
    stamp = _file_stamp(lockfile_path)
    if stamp is None:
        return None
    data = _load_package_lock(lockfile_path, stamp)
    if data is None:
        return None

    lockfile_version = data.get("lockfileVersion", 1)
    packages = data.get("packages")
    if isinstance(lockfile_version, int) and lockfile_version >= 2 and isinstance(packages, dict):
        version = _version_from_packages_map(package, packages)
        if version:
            return version

    deps = data.get("dependencies")
    if isinstance(deps, dict):
        return _version_from_dependencies_map(package, deps)
    return None


# ---------- yarn.lock ----------


def _descriptor_name(descriptor: str) -> Optional[str]:
    """Return the package name of a yarn descriptor like "@scope/pkg@npm:^1.0.0"."""
    descriptor = descriptor.strip().strip('"').strip("'").strip()
    if not descriptor:
        return None
    at = descriptor.find("@", 1)
    if at <= 0:
        return None
    return descriptor[:at]


def _split_header(line: str) -> List[str]:
    """Split a block header into descriptor names."""
    body = line.rstrip()
    if body.endswith(":"):
        body = body[:-1]
    names = []
    for descriptor in body.split(","):
        name = _descriptor_name(descriptor)
        if name:
            names.append(name)
    return names


def _field_value(line: str, field_name: str) -> Optional[str]:
    """Read ``field_name`` from a block line in either dialect.

    Classic: ``version "1.2.3"``; Berry: ``version: 1.2.3``.
    """
    stripped = line.strip()
    if not stripped.startswith(field_name):
        return None
    rest = stripped[len(field_name):]
    if not rest or rest[0] not in (" ", "\t", ":"):
        return None
    return _clean(rest.lstrip(":").strip())


def tokenize_yarn_lock(content: str) -> Iterator[Tuple[int, List[str]]]:
    """Yield ``(line_index, descriptor_names)`` for every block header."""
    for idx, line in enumerate(content.splitlines()):
        if not line or line[0] in (" ", "\t", "#"):
            continue
        if not line.rstrip().endswith(":"):
            continue
        names = _split_header(line)
        if names:
            yield idx, names


def _yarn_block_version(lines: List[str], header_idx: int) -> Optional[str]:
    end = min(len(lines), header_idx + 1 + Constants.YARN_BLOCK_SCAN_LINES)
    for line in lines[header_idx + 1:end]:
        if line and line[0] not in (" ", "\t"):
            break  # next block started
        version = _field_value(line, "version")
        if version:
            return version
    return None


def index_yarn_lock(content: str) -> Dict[str, str]:
    """Map each package name to the version of the first header block that pins one."""
    lines = content.splitlines()
    index: Dict[str, str] = {}
    for idx, names in tokenize_yarn_lock(content):
        pending = [n for n in names if n not in index]
        if not pending:
            continue
        version = _yarn_block_version(lines, idx)
        if version:
            for name in pending:
                index[name] = version
    return index


@lru_cache(maxsize=_LOCKFILE_CACHE_SIZE)
def _load_yarn_index(path: str, stamp: Stamp) -> Optional[Dict[str, str]]:  # pylint: disable=unused-argument
    content = _read_text(path, "yarn.lock")
    if content is None:
        return None
    return index_yarn_lock(content)


def extract_version_yarn(package: str, lockfile_path: str) -> Optional[str]:
    """Extract the locked version of ``package`` from yarn.lock (classic or Berry).

    The first header naming the package with a version field wins. For
    scoped packages with no exact header, the unscoped suffix is tried as a
    second pass.

    Args:
        package: Package name, scoped or not.
        lockfile_path: Path to yarn.lock.

    Returns:
        Version string or None.
    """
    stamp = _file_stamp(lockfile_path)
    if stamp is None:
        return None
    index = _load_yarn_index(lockfile_path, stamp)
    if not index:
        return None
    return index.get(package) or index.get(_unscoped(package))


# ---------- pnpm-lock.yaml ----------


def split_pnpm_key(key: str) -> Tuple[Optional[str], Optional[str]]:
    """Split a pnpm ``packages`` key into (name, version).

    Handles ``/name/1.0.0``, ``/name/1.0.0_peer@2.0.0``, ``/name@1.0.0``,
    ``/name@1.0.0/``, ``name@1.0.0(peer@2.0.0)`` and the scoped variants.
    """
    k = str(key).strip().strip('"').strip("'").strip()
    if k.endswith(":"):
        k = k[:-1].strip().strip('"').strip("'")
    k = k.lstrip("/").split("(", 1)[0].rstrip("/")
    if not k:
        return None, None

    at = k.find("@", 1)
    if at > 0:
        name, version = k[:at], k[at + 1:]
        slashes = name.count("/")
        if (name.startswith("@") and slashes == 1) or (not name.startswith("@") and slashes == 0):
            return name, (version or None)

    parts = k.split("/")
    if k.startswith("@"):
        if len(parts) < 3:
            return None, None
        name, version = f"{parts[0]}/{parts[1]}", parts[2]
    else:
        if len(parts) < 2:
            return None, None
        name, version = parts[0], parts[1]
    version = version.split("_", 1)[0]
    return name, (version or None)


def _pnpm_keys_structured(data: Dict[str, Any]) -> List[str]:
    keys: List[str] = []
    for section in ("packages", "snapshots"):
        entries = data.get(section)
        if isinstance(entries, dict):
            keys.extend(str(k) for k in entries.keys())
    return keys


def _pnpm_keys_from_lines(content: str) -> List[str]:
    """Fallback tokenizer: indented mapping keys that look like package paths."""
    keys: List[str] = []
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped.endswith(":") or line == stripped:
            continue
        candidate = stripped[:-1].strip().strip('"').strip("'")
        if candidate.startswith("/") or "@" in candidate[1:]:
            keys.append(candidate)
    return keys


def index_pnpm_lock(content: str, source: str = "pnpm-lock.yaml") -> Dict[str, str]:
    """Map each package name to the version of its first key in the document.

    The document is read with PyYAML; if it is malformed, key lines are
    tokenized directly.
    """
    try:
        data = yaml.safe_load(content)
        keys = _pnpm_keys_structured(data) if isinstance(data, dict) else []
    except yaml.YAMLError as e:
        logger.debug("pnpm-lock.yaml %s is not valid YAML (%s); tokenizing key lines", source, e)
        keys = _pnpm_keys_from_lines(content)

    index: Dict[str, str] = {}
    for key in keys:
        name, version = split_pnpm_key(key)
        if name and version and name not in index:
            index[name] = version
    return index


@lru_cache(maxsize=_LOCKFILE_CACHE_SIZE)
def _load_pnpm_index(path: str, stamp: Stamp) -> Optional[Dict[str, str]]:  # pylint: disable=unused-argument
    content = _read_text(path, "pnpm-lock.yaml")
    if content is None:
        return None
    return index_pnpm_lock(content, path)


def extract_version_pnpm(package: str, lockfile_path: str) -> Optional[str]:
    """Extract the locked version of ``package`` from pnpm-lock.yaml.

    Args:
        package: Package name, scoped or not.
        lockfile_path: Path to pnpm-lock.yaml.

    Returns:
        Version string or None.
    """
    stamp = _file_stamp(lockfile_path)
    if stamp is None:
        return None
    index = _load_pnpm_index(lockfile_path, stamp)
    if not index:
        return None
    return index.get(package)


def clear_lockfile_cache() -> None:
    """Drop every cached lockfile parse."""
    _load_package_lock.cache_clear()
    _load_yarn_index.cache_clear()
    _load_pnpm_index.cache_clear()


# ---------- dispatch ----------

_EXTRACTORS = {
    PackageManagerKind.NPM: extract_version_npm,
    PackageManagerKind.YARN: extract_version_yarn,
    PackageManagerKind.PNPM: extract_version_pnpm,
}


def extract_version_from_lockfile(
    package: str, directory: str, kind: PackageManagerKind
) -> Optional[str]:
    """Resolve ``package`` from the lockfile(s) of ``directory``.

    A known kind reads only its own lockfile; UNKNOWN tries every lockfile
    that exists, npm then yarn then pnpm.
    """
    if kind is PackageManagerKind.UNKNOWN:
        kinds = [PackageManagerKind.NPM, PackageManagerKind.YARN, PackageManagerKind.PNPM]
    else:
        kinds = [kind]
    for k in kinds:
        path = os.path.join(directory, LOCKFILE_NAMES[k])
        if not os.path.isfile(path):
            continue
        version = _EXTRACTORS[k](package, path)
        if version:
            return version
    return None
