"""fetch-ui: install UI components and their dependencies from a component registry.

Exits with an ``ExitCodes`` value describing the outcome.
"""

import logging
import sys

from args import parse_args
from cli_add import run_add
from cli_registry import run_info, run_list
from common.errors import FetchUIError
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import ExitCodes

COMMANDS = {
    "add": run_add,
    "list": run_list,
    "info": run_info,
}


def main(argv=None):
    """Main function of the program."""
    logger = logging.getLogger(__name__)

    args = parse_args(argv)
    configure_logging(args.LOG_LEVEL, logfile=args.LOG_FILE)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action=args.command),
        )

    try:
        COMMANDS[args.command](args)
    except FetchUIError as exc:
        logger.error(
            "%s failed during %s: %s",
            args.command,
            exc.stage,
            exc,
            extra=extra_context(
                event="command", component="cli", action=args.command, outcome="error",
                stage=exc.stage, detail=exc.detail()
            ),
        )
        sys.exit(exc.exit_code.value)
    except ValueError as exc:
        logger.error("%s", exc, extra=extra_context(event="command", component="cli", outcome="usage_error"))
        sys.exit(ExitCodes.USAGE_ERROR.value)
    except KeyboardInterrupt:
        logger.error("Interrupted")
        sys.exit(ExitCodes.FILE_ERROR.value)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI finished",
            extra=extra_context(event="function_exit", component="cli", action=args.command, outcome="success"),
        )
    sys.exit(ExitCodes.SUCCESS.value)


if __name__ == "__main__":
    main()
