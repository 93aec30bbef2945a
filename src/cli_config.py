"""Runtime configuration for the CLI: YAML tunables and CLI overrides.

Extracted from threatscan.py to keep the entrypoint slim. Precedence is
CLI flags > environment > YAML config > built-in defaults. Never raises:
a bad value is logged and ignored.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from analysis.threats import as_flag
from constants import Constants, _load_yaml_config

logger = logging.getLogger(__name__)

# YAML ``limits`` keys -> Constants attributes
_LIMIT_KEYS = {
    "workspace_pattern_max_depth": "WORKSPACE_PATTERN_MAX_DEPTH",
    "workspace_fallback_max_depth": "WORKSPACE_FALLBACK_MAX_DEPTH",
    "workspace_fallback_max_results": "WORKSPACE_FALLBACK_MAX_RESULTS",
    "yarn_block_scan_lines": "YARN_BLOCK_SCAN_LINES",
    "global_scan_max_depth": "GLOBAL_SCAN_MAX_DEPTH",
    "global_scan_max_files": "GLOBAL_SCAN_MAX_FILES",
    "tool_timeout": "TOOL_TIMEOUT",
    "string_marker_max_files": "STRING_MARKER_MAX_FILES",
}


def _positive_int(value: Any) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def apply_runtime_config(cfg: Dict[str, Any]) -> None:
    """Apply a parsed YAML runtime config onto Constants.

    Recognized keys: ``threats_dir``, ``workers``, ``check_global_cache`` and
    a ``limits`` mapping of discovery bounds.
    """
    if not isinstance(cfg, dict):
        return
    if isinstance(cfg.get("threats_dir"), str) and cfg["threats_dir"].strip():
        Constants.DEFAULT_THREATS_DIR = cfg["threats_dir"].strip()
    if "workers" in cfg:
        workers = _positive_int(cfg.get("workers"))
        if workers is None:
            logger.warning("Ignoring invalid config value workers=%r", cfg.get("workers"))
        else:
            Constants.MAX_WORKERS = workers
    if "check_global_cache" in cfg:
        Constants.CHECK_GLOBAL_CACHE = as_flag(cfg.get("check_global_cache"))
    limits = cfg.get("limits") or {}
    if not isinstance(limits, dict):
        logger.warning("Ignoring config 'limits': expected a mapping")
        return
    for key, value in limits.items():
        attr = _LIMIT_KEYS.get(key)
        if attr is None:
            logger.warning("Ignoring unknown config limit: %s", key)
            continue
        number = _positive_int(value)
        if number is None:
            logger.warning("Ignoring invalid config value %s=%r", key, value)
            continue
        setattr(Constants, attr, number)


def load_runtime_config(path: Optional[str] = None) -> None:
    """Load the YAML runtime config (explicit path or default locations) and apply it."""
    if path and not os.path.isfile(path):
        logger.warning("Config file not found: %s", path)
        return
    apply_runtime_config(_load_yaml_config(path))


def resolve_threats_dir(args) -> str:
    """Threats directory: --config-dir, else $THREATSCAN_THREATS_DIR, else the configured default."""
    cli_dir = getattr(args, "THREATS_DIR", None)
    if cli_dir:
        return cli_dir
    env_dir = os.environ.get(Constants.ENV_THREATS_DIR)
    if env_dir and env_dir.strip():
        return env_dir.strip()
    return Constants.DEFAULT_THREATS_DIR


def apply_cli_overrides(args) -> None:
    """Apply CLI overrides for tunables (CLI has highest precedence)."""
    workers = getattr(args, "WORKERS", None)
    if workers is not None:
        number = _positive_int(workers)
        if number is None:
            logger.warning("Ignoring invalid --workers value: %r", workers)
        else:
            Constants.MAX_WORKERS = number
    if getattr(args, "CHECK_GLOBAL", False):
        Constants.CHECK_GLOBAL_CACHE = True
