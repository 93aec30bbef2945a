"""Argument parsing functionality for threatscan."""

import argparse
from constants import Constants


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="threatscan",
        description=(
            "threatscan - Supply-chain threat scanner for npm, Yarn and pnpm projects"
        ),
        add_help=True,
    )

    parser.add_argument("directories",
                        metavar="DIRECTORY",
                        help="Additional directories to scan (the current directory is always scanned)",
                        nargs="*",
                        default=[])
    parser.add_argument("-t", "--threat",
                        dest="THREAT",
                        help="Only load threat definitions whose file name contains NAME",
                        metavar="NAME",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--config-dir",
                        dest="THREATS_DIR",
                        help=(
                            "Directory holding threat definitions "
                            f"(default: ${Constants.ENV_THREATS_DIR} or {Constants.DEFAULT_THREATS_DIR})"
                        ),
                        metavar="DIR",
                        action="store",
                        type=str)
    parser.add_argument("-v", "--verbose",
                        dest="VERBOSE",
                        help="Show every checked package and tool; also enables the global cache search.",
                        action="store_true")
    parser.add_argument("--check-global", "--global",
                        dest="CHECK_GLOBAL",
                        help="Search the npm/yarn/pnpm global caches when a package is not found locally.",
                        action="store_true")
    parser.add_argument("--scan-home",
                        dest="SCAN_HOME",
                        help="Scan the home directory instead of the given directories.",
                        action="store_true")
    parser.add_argument("-o", "--output",
                        dest="OUTPUT",
                        help="Path to JSON output file",
                        action="store",
                        type=str)
    parser.add_argument("--workers",
                        dest="WORKERS",
                        help="Parallel package lookups per threat (default: 1)",
                        action="store",
                        type=int)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Do not output to console.",
                        action="store_true")
    parser.add_argument("--config",
                        dest="CONFIG",
                        help="Path to runtime configuration file (YAML)",
                        action="store",
                        type=str)

    return parser.parse_args(argv)
