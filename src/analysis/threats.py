"""Threat definition loading and validation.

Definitions are JSON or YAML documents, one threat per file, validated
against a Draft-07 JSON Schema before being turned into immutable
ThreatDefinition records.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

import yaml
from jsonschema import Draft7Validator

from constants import Constants
from versioning.models import ThreatDefinition, VersionRange, VersionRule

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when a threat definition cannot be parsed or fails validation."""


_VERSION = {"type": ["string", "number"]}
_VERSION_LIST = {"type": "array", "items": _VERSION}
_STRING_LIST = {"type": "array", "items": {"type": "string"}}
_FLAG = {"type": ["boolean", "string", "integer"]}

RULE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "vulnerable_versions": _VERSION_LIST,
        "patched_versions": _VERSION_LIST,
        "min_vulnerable_version": _VERSION,
        "vulnerable_ranges": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"min": _VERSION, "max": _VERSION},
            },
        },
    },
}

THREAT_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["name", "description"],
    "properties": {
        "name": {"type": "string"},
        "description": {"type": "string"},
        "cve": {"type": ["string", "null"]},
        "reference": {"type": ["string", "null"]},
        "check_global_cache": _FLAG,
        "scan_home": _FLAG,
        "packages": _STRING_LIST,
        "vulnerable_versions": _VERSION_LIST,
        "patched_versions": _VERSION_LIST,
        "min_vulnerable_version": _VERSION,
        "package_versions": {"type": "object", "additionalProperties": RULE_SCHEMA},
        "tool_versions": {"type": "object", "additionalProperties": RULE_SCHEMA},
        "remediation": _STRING_LIST,
        "file_patterns": _STRING_LIST,
        "directory_patterns": _STRING_LIST,
        "string_markers": _STRING_LIST,
        "process_patterns": _STRING_LIST,
    },
}

_VALIDATOR = Draft7Validator(THREAT_SCHEMA)


def validate_definition(data: Any, source: str) -> None:
    """Validate a parsed definition; raise ConfigError on the first problem."""
    errs = sorted(_VALIDATOR.iter_errors(data), key=lambda e: list(e.path))
    if errs:
        first = errs[0]
        path = "/".join([str(p) for p in first.path])
        raise ConfigError(f"{source}: invalid definition at '{path}': {first.message}")


def as_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return False


def _versions(values: Optional[List[Any]]) -> frozenset:
    return frozenset(str(v).strip() for v in (values or []) if str(v).strip())


def _optional_version(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def build_rule(spec: Dict[str, Any]) -> VersionRule:
    """Build a VersionRule from its definition-file representation."""
    ranges = []
    for item in spec.get("vulnerable_ranges") or []:
        low = _optional_version(item.get("min"))
        high = _optional_version(item.get("max"))
        if low and high:
            ranges.append(VersionRange(min=low, max=high))
    return VersionRule(
        vulnerable_versions=_versions(spec.get("vulnerable_versions")),
        patched_versions=_versions(spec.get("patched_versions")),
        min_vulnerable=_optional_version(spec.get("min_vulnerable_version")),
        vulnerable_ranges=tuple(ranges),
    )


def _package_rules(data: Dict[str, Any]) -> Dict[str, VersionRule]:
    per_package = data.get("package_versions")
    if per_package:
        return {name: build_rule(spec or {}) for name, spec in per_package.items()}
    # Legacy flat format: one shared rule for every listed package
    shared = build_rule(data)
    return {name: shared for name in data.get("packages") or [] if name.strip()}


def parse_definition(data: Any, threat_id: str, source_path: Optional[str] = None) -> ThreatDefinition:
    """Validate ``data`` and convert it to a ThreatDefinition.

    Raises:
        ConfigError: If the definition is structurally invalid.
    """
    validate_definition(data, source_path or threat_id)
    return ThreatDefinition(
        id=threat_id,
        name=data["name"],
        description=data["description"],
        cve=data.get("cve") or None,
        reference=data.get("reference") or None,
        check_global_cache=as_flag(data.get("check_global_cache", False)),
        scan_home=as_flag(data.get("scan_home", False)),
        remediation=tuple(data.get("remediation") or ()),
        package_rules=_package_rules(data),
        tool_rules={
            name: build_rule(spec or {})
            for name, spec in (data.get("tool_versions") or {}).items()
        },
        file_patterns=tuple(p for p in data.get("file_patterns") or () if p.strip()),
        directory_patterns=tuple(p for p in data.get("directory_patterns") or () if p.strip()),
        string_markers=tuple(m for m in data.get("string_markers") or () if m.strip()),
        process_patterns=tuple(p for p in data.get("process_patterns") or () if p.strip()),
        source_path=source_path,
    )


def load_threat_file(path: str) -> ThreatDefinition:
    """Read and validate one definition file (JSON or YAML).

    Raises:
        ConfigError: If the file cannot be read, parsed or validated.
    """
    threat_id, ext = os.path.splitext(os.path.basename(path))
    try:
        with open(path, "r", encoding="utf-8") as fh:
            if ext.lower() == ".json":
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"{path}: unreadable ({e})") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path}: invalid JSON ({e})") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"{path}: invalid YAML ({e})") from e
    return parse_definition(data, threat_id, path)


def discover_threat_files(threats_dir: str, threat_filter: Optional[str] = None) -> List[str]:
    """List definition files in ``threats_dir``, optionally filtered by base-name substring."""
    if not os.path.isdir(threats_dir):
        raise ConfigError(f"Config directory not found: {threats_dir}")
    files = []
    for entry in sorted(os.listdir(threats_dir)):
        base, ext = os.path.splitext(entry)
        if ext.lower() not in Constants.THREAT_FILE_EXTENSIONS:
            continue
        if threat_filter and threat_filter not in base:
            continue
        path = os.path.join(threats_dir, entry)
        if os.path.isfile(path):
            files.append(path)
    return files


def load_threats(
    threats_dir: str, threat_filter: Optional[str] = None
) -> Tuple[List[ThreatDefinition], Dict[str, str]]:
    """Load every definition in ``threats_dir``.

    An invalid definition is reported and skipped; it never stops the others.

    Returns:
        Tuple of (valid definitions in file-name order, {path: error message}).

    Raises:
        ConfigError: If ``threats_dir`` does not exist.
    """
    threats: List[ThreatDefinition] = []
    errors: Dict[str, str] = {}
    for path in discover_threat_files(threats_dir, threat_filter):
        try:
            threats.append(load_threat_file(path))
        except ConfigError as e:
            logger.error("Skipping threat definition: %s", e)
            errors[path] = str(e)
    return threats, errors
