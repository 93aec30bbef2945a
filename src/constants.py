"""Constants used in the project."""

import logging
import os
from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    INDICATORS_FOUND = 2


class PackageManagerKind(Enum):
    """Package managers whose lockfiles and stores can be resolved.

    Args:
        Enum (string): Package manager identifiers.
    """

    NPM = "npm"
    YARN = "yarn"
    PNPM = "pnpm"
    UNKNOWN = "unknown"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    PACKAGE_JSON_FILE = "package.json"
    PACKAGE_LOCK_FILE = "package-lock.json"
    YARN_LOCK_FILE = "yarn.lock"
    PNPM_LOCK_FILE = "pnpm-lock.yaml"
    PNPM_WORKSPACE_FILE = "pnpm-workspace.yaml"
    NODE_MODULES_DIR = "node_modules"
    VCS_DIRS = [".git", ".svn", ".hg"]

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    ENV_LOG_LEVEL = "THREATSCAN_LOG_LEVEL"
    ENV_THREATS_DIR = "THREATSCAN_THREATS_DIR"
    ENV_CONFIG = "THREATSCAN_CONFIG"
    DEFAULT_THREATS_DIR = "./security-threats"
    THREAT_FILE_EXTENSIONS = [".json", ".yml", ".yaml"]

    # Bounds for filesystem discovery
    WORKSPACE_PATTERN_MAX_DEPTH = 3
    WORKSPACE_FALLBACK_MAX_DEPTH = 4
    WORKSPACE_FALLBACK_MAX_RESULTS = 50
    YARN_BLOCK_SCAN_LINES = 10
    GLOBAL_SCAN_MAX_DEPTH = 6
    GLOBAL_SCAN_MAX_FILES = 5000

    # External commands
    TOOL_TIMEOUT = 10  # seconds for any package manager / runtime invocation
    SUPPORTED_TOOLS = ["node", "npm", "yarn", "pnpm", "bun"]

    # Indicator checks
    STRING_MARKER_EXTENSIONS = [".js", ".json", ".sh", ".ts", ".jsx", ".tsx", ".txt"]
    STRING_MARKER_MAX_FILES = 1000
    HOME_EXCLUDED_DIRS = [
        "Library",
        ".Trash",
        ".npm",
        ".yarn",
        ".pnpm-store",
        ".cache",
        ".local/share/Trash",
        ".config/*/Cache",
    ]

    MAX_WORKERS = 1
    CHECK_GLOBAL_CACHE = False


def _default_config_paths():
    """Return candidate runtime config locations in precedence order."""
    paths = []
    env_path = os.environ.get(Constants.ENV_CONFIG)
    if env_path:
        paths.append(env_path)
    paths.append(os.path.join(os.getcwd(), "threatscan.yml"))
    paths.append(os.path.join(os.path.expanduser("~"), ".config", "threatscan", "threatscan.yml"))
    return paths


def _load_yaml_config(path=None):
    """Load the runtime YAML config from an explicit path or the default locations.

    Returns an empty dict when nothing is found or the file cannot be parsed.
    """
    import yaml  # pylint: disable=import-outside-toplevel

    candidates = [path] if path else _default_config_paths()
    for candidate in candidates:
        if not candidate or not os.path.isfile(candidate):
            continue
        try:
            with open(candidate, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
        except (OSError, yaml.YAMLError) as e:
            logging.getLogger(__name__).warning("Ignoring unreadable config %s: %s", candidate, e)
            return {}
        if isinstance(data, dict):
            return data
        return {}
    return {}
