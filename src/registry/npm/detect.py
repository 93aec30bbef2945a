"""Detect which package manager governs a directory."""

from __future__ import annotations

import logging
import os

from constants import Constants, PackageManagerKind
from .manifest import read_manifest

logger = logging.getLogger(__name__)

_LOCKFILE_PRECEDENCE = (
    (Constants.PNPM_LOCK_FILE, PackageManagerKind.PNPM),
    (Constants.YARN_LOCK_FILE, PackageManagerKind.YARN),
    (Constants.PACKAGE_LOCK_FILE, PackageManagerKind.NPM),
)

LOCKFILE_NAMES = {
    PackageManagerKind.NPM: Constants.PACKAGE_LOCK_FILE,
    PackageManagerKind.YARN: Constants.YARN_LOCK_FILE,
    PackageManagerKind.PNPM: Constants.PNPM_LOCK_FILE,
}


def _kind_from_package_manager_field(value) -> PackageManagerKind:
    """Map a "packageManager" value such as "pnpm@8.6.0" to a kind."""
    if not isinstance(value, str):
        return PackageManagerKind.UNKNOWN
    name = value.strip().split("@", 1)[0].strip().lower()
    for kind in (PackageManagerKind.NPM, PackageManagerKind.YARN, PackageManagerKind.PNPM):
        if name == kind.value:
            return kind
    return PackageManagerKind.UNKNOWN


def detect_package_manager(directory: str) -> PackageManagerKind:
    """Identify the package manager of ``directory``.

    Precedence: pnpm-lock.yaml > yarn.lock > package-lock.json > the
    manifest's "packageManager" field. Never raises.

    Args:
        directory: Directory to inspect.

    Returns:
        PackageManagerKind, UNKNOWN when nothing identifies the manager.
    """
    for filename, kind in _LOCKFILE_PRECEDENCE:
        if os.path.isfile(os.path.join(directory, filename)):
            return kind

    data = read_manifest(directory)
    if data:
        kind = _kind_from_package_manager_field(data.get("packageManager"))
        if kind is not PackageManagerKind.UNKNOWN:
            logger.debug("packageManager field selects %s for %s", kind.value, directory)
        return kind
    return PackageManagerKind.UNKNOWN
