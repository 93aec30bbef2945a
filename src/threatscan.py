"""threatscan - Supply-chain threat scanner for npm, Yarn and pnpm projects

    Returns:
        int: Exit code
"""
import logging
import os
import sys

from constants import ExitCodes, Constants
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from args import parse_args
from cli_config import apply_cli_overrides, load_runtime_config, resolve_threats_dir
from analysis.threats import ConfigError, load_threats
from analysis.scanner import ScanOptions, run_scan
import report

logger = logging.getLogger(__name__)


def build_scan_roots(args):
    """Scan roots: the current directory plus positional ones, or only home with --scan-home."""
    if getattr(args, "SCAN_HOME", False):
        return [os.path.expanduser("~")]
    return ["."] + list(getattr(args, "directories", None) or [])


def build_options(args) -> ScanOptions:
    return ScanOptions(
        check_global_cache=bool(Constants.CHECK_GLOBAL_CACHE),
        verbose=bool(getattr(args, "VERBOSE", False)),
        max_workers=int(Constants.MAX_WORKERS),
    )


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    # Honor CLI --loglevel by passing it to centralized logger via env
    if getattr(args, "LOG_LEVEL", None):
        os.environ[Constants.ENV_LOG_LEVEL] = str(args.LOG_LEVEL).upper()
    configure_logging(log_file=getattr(args, "LOG_FILE", None), quiet=getattr(args, "QUIET", False))

    load_runtime_config(getattr(args, "CONFIG", None))
    apply_cli_overrides(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main")
        )

    logger.info(r"""
╔╦╗╦ ╦╦═╗╔═╗╔═╗╔╦╗╔═╗╔═╗╔═╗╔╗╔
 ║ ╠═╣╠╦╝║╣ ╠═╣ ║ ╚═╗║  ╠═╣║║║
 ╩ ╩ ╩╩╚═╚═╝╩ ╩ ╩ ╚═╝╚═╝╩ ╩╝╚╝

  Supply-Chain Threat Scanner
""")

    threats_dir = resolve_threats_dir(args)
    try:
        threats, config_errors = load_threats(threats_dir, getattr(args, "THREAT", None))
    except ConfigError as e:
        logger.error("%s", e)
        sys.exit(ExitCodes.FILE_ERROR.value)

    if not threats:
        if getattr(args, "THREAT", None):
            logger.error("No threat definitions matching '%s' found in %s", args.THREAT, threats_dir)
        else:
            logger.error("No threat definitions found in %s", threats_dir)
        sys.exit(ExitCodes.FILE_ERROR.value)

    logger.info("Loaded %d threat definition(s) from %s", len(threats), threats_dir)

    options = build_options(args)
    summary = run_scan(
        threats,
        build_scan_roots(args),
        options,
        config_errors=config_errors,
        on_outcome=lambda outcome, threat: report.log_outcome(outcome, threat, options.verbose),
    )
    report.log_summary(summary)

    if getattr(args, "OUTPUT", None):
        if not report.export_json(summary, args.OUTPUT):
            sys.exit(ExitCodes.FILE_ERROR.value)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI finished",
            extra=extra_context(
                event="function_exit",
                component="cli",
                action="main",
                outcome="triggered" if summary.triggered else "clean",
                count=summary.threats_scanned,
            )
        )

    if summary.triggered:
        sys.exit(ExitCodes.INDICATORS_FOUND.value)
    sys.exit(ExitCodes.SUCCESS.value)


if __name__ == "__main__":
    main()
