"""Malware indicator checks: file names, directory names, string markers, processes."""

from __future__ import annotations

import fnmatch
import glob
import logging
import os
from typing import Iterator, List, Sequence, Tuple

from constants import Constants
from common.process import run_command
from versioning.models import IndicatorFinding

logger = logging.getLogger(__name__)

_ALWAYS_EXCLUDED = set([Constants.NODE_MODULES_DIR] + Constants.VCS_DIRS)
_BINARY_SNIFF_BYTES = 8192
_CHUNK_BYTES = 64 * 1024


def _home_exclusions(scan_root: str) -> List[str]:
    """Absolute cache/trash path globs to skip when ``scan_root`` lies inside the home directory."""
    home = os.path.abspath(os.path.expanduser("~"))
    root = os.path.abspath(scan_root)
    if root != home and not root.startswith(home + os.sep):
        return []
    return [os.path.join(glob.escape(home), *rel.split("/")) for rel in Constants.HOME_EXCLUDED_DIRS]


def _is_excluded(path: str, exclusions: Sequence[str]) -> bool:
    # a glob segment never spans a separator
    depth = path.count(os.sep)
    return any(
        pattern.count(os.sep) == depth and fnmatch.fnmatchcase(path, pattern)
        for pattern in exclusions
    )


def walk_scan_root(scan_root: str) -> Iterator[Tuple[str, List[str], List[str]]]:
    """os.walk over ``scan_root`` minus dependency, VCS and home cache directories."""
    excluded = _home_exclusions(scan_root)
    for current, dirs, files in os.walk(scan_root):
        dirs[:] = sorted(
            d for d in dirs
            if d not in _ALWAYS_EXCLUDED and not _is_excluded(os.path.join(current, d), excluded)
        )
        yield current, dirs, sorted(files)


def check_file_patterns(scan_root: str, patterns: Sequence[str]) -> List[IndicatorFinding]:
    """Report files whose name matches any glob in ``patterns``."""
    findings: List[IndicatorFinding] = []
    if not patterns:
        return findings
    for current, _, files in walk_scan_root(scan_root):
        for name in files:
            for pattern in patterns:
                if fnmatch.fnmatch(name, pattern):
                    findings.append(IndicatorFinding("file", pattern, os.path.join(current, name)))
    return findings


def check_directory_patterns(scan_root: str, patterns: Sequence[str]) -> List[IndicatorFinding]:
    """Report directories whose name matches any glob in ``patterns``."""
    findings: List[IndicatorFinding] = []
    if not patterns:
        return findings
    for current, dirs, _ in walk_scan_root(scan_root):
        for name in dirs:
            for pattern in patterns:
                if fnmatch.fnmatch(name, pattern):
                    findings.append(IndicatorFinding("directory", pattern, os.path.join(current, name)))
    return findings


def _markers_in_file(path: str, markers: Sequence[str]) -> List[str]:
    """Markers present in ``path``, searched chunk by chunk.

    Binary files (a NUL byte near the start) and unreadable files yield nothing.
    """
    needles = {marker: marker.encode("utf-8") for marker in markers}
    overlap = max(len(n) for n in needles.values()) - 1
    found = set()
    tail = b""
    try:
        with open(path, "rb") as fh:
            chunk = fh.read(_CHUNK_BYTES)
            if b"\x00" in chunk[:_BINARY_SNIFF_BYTES]:
                return []
            while chunk:
                window = tail + chunk
                for marker, needle in needles.items():
                    if marker not in found and needle in window:
                        found.add(marker)
                if len(found) == len(needles):
                    break
                # keep enough bytes to match a marker that straddles two chunks
                tail = window[-overlap:] if overlap > 0 else b""
                chunk = fh.read(_CHUNK_BYTES)
    except OSError as e:
        logger.debug("Cannot read %s: %s", path, e)
        return []
    return [marker for marker in markers if marker in found]


def check_string_markers(scan_root: str, markers: Sequence[str]) -> List[IndicatorFinding]:
    """Report text files containing any literal marker.

    Only script/data extensions are searched, and at most
    Constants.STRING_MARKER_MAX_FILES files per scan. Files are streamed,
    so their size does not bound memory use.
    """
    findings: List[IndicatorFinding] = []
    if not markers:
        return findings
    extensions = tuple(Constants.STRING_MARKER_EXTENSIONS)
    searched = 0
    for current, _, files in walk_scan_root(scan_root):
        for name in files:
            if not name.endswith(extensions):
                continue
            if searched >= Constants.STRING_MARKER_MAX_FILES:
                return findings
            searched += 1
            path = os.path.join(current, name)
            for marker in _markers_in_file(path, markers):
                findings.append(IndicatorFinding("string", marker, path))
    return findings


def check_process_patterns(patterns: Sequence[str]) -> List[IndicatorFinding]:
    """Report patterns that match a running process command line (``pgrep -f``)."""
    findings: List[IndicatorFinding] = []
    for pattern in patterns:
        pids = run_command(["pgrep", "-f", pattern])
        if pids:
            findings.append(IndicatorFinding("process", pattern, ",".join(pids.split())))
    return findings
