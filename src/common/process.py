"""Read-only invocation of external executables (package managers, runtimes).

Every failure mode (missing executable, non-zero exit, timeout, OS error)
collapses to ``None`` so callers can treat it as "no information".
"""
from __future__ import annotations

import logging
import shutil
import subprocess
from typing import List, Optional

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled

logger = logging.getLogger(__name__)


def which(executable: str) -> Optional[str]:
    """Return the resolved path of ``executable`` on PATH, if any."""
    return shutil.which(executable)


def run_command(cmd: List[str], timeout: Optional[float] = None) -> Optional[str]:
    """Run ``cmd`` and return its stripped stdout, or None on any failure.

    Args:
        cmd: Command tokens; the first token is looked up on PATH.
        timeout: Seconds before the process is abandoned (default Constants.TOOL_TIMEOUT).

    Returns:
        Stripped standard output when the command exits 0 with non-empty output.
    """
    if not cmd:
        return None
    exe = which(cmd[0])
    if exe is None:
        if is_debug_enabled(logger):
            logger.debug(
                "Executable not found",
                extra=extra_context(event="tool_missing", component="process", target=cmd[0]),
            )
        return None
    limit = Constants.TOOL_TIMEOUT if timeout is None else timeout
    try:
        result = subprocess.run(
            [exe] + list(cmd[1:]),
            capture_output=True,
            text=True,
            timeout=limit,
            check=False,
        )
    except subprocess.TimeoutExpired:
        logger.debug("Command timed out after %s seconds: %s", limit, " ".join(cmd))
        return None
    except (OSError, ValueError) as e:
        logger.debug("Command failed to start: %s (%s)", " ".join(cmd), e)
        return None

    if result.returncode != 0:
        if is_debug_enabled(logger):
            logger.debug(
                "Command exited non-zero",
                extra=extra_context(
                    event="tool_error",
                    component="process",
                    target=cmd[0],
                    status_code=result.returncode,
                ),
            )
        return None
    output = (result.stdout or "").strip()
    return output or None
