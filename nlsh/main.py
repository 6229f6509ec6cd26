import logging
import sys

from .cli import run_cli
from .errors import ExitCode

# Configure logging
logger = logging.getLogger(__name__)


def main():
    """Main entry point for the application."""
    try:
        exit_code = run_cli()
        sys.exit(int(exit_code))
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        print("\nOperation cancelled by user", file=sys.stderr)
        sys.exit(ExitCode.INTERRUPTED)
    except Exception as e:
        logger.exception(f"Unhandled exception: {str(e)}")
        print(f"Error: {str(e)}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
