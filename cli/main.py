"""CLI entry point."""

import sys
import os

from common.logging_config import setup_logging
from cli.commands import close_services
from cli.parser import ParseError, parse_tokens
from cli.repl import dispatch_command, repl_loop


def run_once(args: list[str]) -> int:
    """
    Run a single command given on the command line.

    Returns:
        Process exit status (0 on success, 1 on error)
    """
    try:
        cmd_obj = parse_tokens(args)
    except ParseError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    result = dispatch_command(cmd_obj)
    if result.startswith("Error:"):
        print(result, file=sys.stderr)
        return 1
    print(result)
    return 0


def main() -> None:
    """Entry point for CLI."""
    log_level = 'DEBUG' if '--debug' in sys.argv else os.getenv('LOG_LEVEL', 'WARNING')
    
    logger = setup_logging('cli', log_level=log_level)
    
    if '--debug' in sys.argv:
        logger.info("Debug logging enabled")
        sys.argv.remove('--debug')
    
    logger.info("CLI starting...")
    status = 0
    try:
        if len(sys.argv) > 1:
            status = run_once(sys.argv[1:])
        else:
            repl_loop()
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise
    finally:
        close_services()
        logger.info("CLI exiting")
    sys.exit(status)


if __name__ == "__main__":
    main()
