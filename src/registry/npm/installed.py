"""Resolve versions from a project's local node_modules install."""

from __future__ import annotations

import os
from typing import Optional

from constants import Constants
from .manifest import manifest_version, read_manifest


def installed_package_dir(package: str, directory: str) -> str:
    """Path where ``package`` would be installed under ``directory``.

    Scoped names map to ``node_modules/@scope/name``.
    """
    parts = package.split("/")
    return os.path.join(directory, Constants.NODE_MODULES_DIR, *parts)


def extract_version_installed(package: str, directory: str) -> Optional[str]:
    """Return the version declared by the installed copy of ``package``, if any."""
    if not package or package.startswith("/") or ".." in package.split("/"):
        return None
    return manifest_version(read_manifest(installed_package_dir(package, directory)))
