"""Read-only access to package.json manifests."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

from constants import Constants

logger = logging.getLogger(__name__)

DEPENDENCY_FIELDS = (
    "dependencies",
    "devDependencies",
    "optionalDependencies",
    "peerDependencies",
)


def read_json_file(path: str) -> Optional[Dict[str, Any]]:
    """Load a JSON object from ``path``; None if missing, unreadable or not an object."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.debug("Failed to read %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else None


def read_manifest(directory: str) -> Optional[Dict[str, Any]]:
    """Return the parsed package.json of ``directory`` if present and valid."""
    return read_json_file(os.path.join(directory, Constants.PACKAGE_JSON_FILE))


def manifest_version(data: Optional[Dict[str, Any]], package: Optional[str] = None) -> Optional[str]:
    """Return the manifest's non-empty "version", optionally requiring its "name" to match."""
    if not data:
        return None
    if package is not None and data.get("name") != package:
        return None
    version = data.get("version")
    if isinstance(version, str) and version.strip():
        return version.strip()
    return None


def declared_spec(package: str, directory: str) -> Optional[str]:
    """Return the dependency spec the root manifest declares for ``package``."""
    data = read_manifest(directory)
    if not data:
        return None
    for fld in DEPENDENCY_FIELDS:
        deps = data.get(fld)
        if isinstance(deps, dict):
            spec = deps.get(package)
            if isinstance(spec, str) and spec.strip():
                return spec.strip()
    return None
