"""Argument parsing functionality for fetch-ui."""

import argparse

from constants import Constants


def _add_common(parser):
    parser.add_argument("-r", "--registry",
                        dest="REGISTRY",
                        help=f"Registry URL or local registry directory (default: ${Constants.ENV_REGISTRY_URL}, "
                             f"project config, then {Constants.REGISTRY_URL})",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("--cwd",
                        dest="CWD",
                        help="Project root (default: current directory)",
                        action="store",
                        type=str,
                        default=".")
    parser.add_argument("--json",
                        dest="JSON",
                        help="Print results as JSON.",
                        action="store_true")


def build_parser():
    """Build the fetch-ui argument parser."""
    parser = argparse.ArgumentParser(
        prog="fetch-ui",
        description="fetch-ui - install UI components and their dependencies from a component registry",
        add_help=True,
    )
    sub = parser.add_subparsers(dest="command", metavar="<command>")
    sub.required = True

    add = sub.add_parser("add", help="Resolve, transform and install a component")
    add.add_argument("COMPONENT",
                     help="Component to install, optionally with a version (button, button@1.2.0)")
    add.add_argument("-v", "--version",
                     dest="VERSION",
                     help="Exact component version (overrides a version in COMPONENT)",
                     action="store",
                     type=str)
    add.add_argument("-t", "--to",
                     dest="TO",
                     help="Components directory, relative to the project root",
                     action="store",
                     type=str)
    add.add_argument("-f", "--force",
                     dest="FORCE",
                     help="Overwrite existing files",
                     action="store_true")
    add.add_argument("-n", "--dry-run",
                     dest="DRY_RUN",
                     help="Resolve and transform in memory; write nothing",
                     action="store_true")
    _add_common(add)

    lst = sub.add_parser("list", help="List components published on the registry")
    lst.add_argument("-p", "--page",
                     dest="PAGE",
                     help="Page number",
                     action="store",
                     type=int,
                     default=1)
    lst.add_argument("--page-size",
                     dest="PAGE_SIZE",
                     help="Components per page",
                     action="store",
                     type=int,
                     default=Constants.REGISTRY_PAGE_SIZE)
    _add_common(lst)

    info = sub.add_parser("info", help="Show a component's manifest and published versions")
    info.add_argument("COMPONENT", help="Component name, optionally with a version")
    _add_common(info)
    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
