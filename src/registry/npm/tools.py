"""Installed versions of JavaScript runtimes and package managers."""

from __future__ import annotations

import logging
from typing import Optional

from constants import Constants
from common.process import run_command
from versioning.compare import normalize_version

logger = logging.getLogger(__name__)


def get_tool_version(tool: str, timeout: Optional[float] = None) -> Optional[str]:
    """Return the installed version of ``tool`` by running ``<tool> --version``.

    Only tools listed in Constants.SUPPORTED_TOOLS are invoked. A missing
    executable, an error or a timeout means "not installed".
    """
    if tool not in Constants.SUPPORTED_TOOLS:
        logger.debug("Unsupported tool '%s'; treating as not installed", tool)
        return None
    output = run_command([tool, "--version"], timeout=timeout)
    if not output:
        return None
    return normalize_version(output.splitlines()[0])
