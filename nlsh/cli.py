import argparse
from typing import List, Optional

from . import __version__
from .config import Provider, get_settings
from .errors import ExitCode
from .handlers import handle_set_api_key, handle_set_provider, handle_translate
from .logger import setup_logging


def _provider(value: str) -> Provider:
    provider = Provider.parse(value)
    if provider is None:
        raise argparse.ArgumentTypeError("provider must be gemini or zai")
    return provider


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nlsh",
        description="Natural language shell: describe what you want, confirm, and run the command.",
    )
    parser.add_argument(
        "-P", "--set-provider", type=_provider, metavar="{gemini,zai}",
        help="Set the default provider (gemini or zai).",
    )
    parser.add_argument("-A", "--set-api-key", metavar="KEY", help="Set the API key for the provider.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("prompt", nargs=argparse.REMAINDER, help="What you want to do, in plain language.")
    return parser


def run_cli(argv: Optional[List[str]] = None) -> int:
    """Parse arguments and dispatch to the handlers. Returns the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(get_settings(), verbose=args.verbose)

    if args.set_provider is not None or args.set_api_key is not None:
        exit_code = ExitCode.OK
        if args.set_provider is not None:
            exit_code = handle_set_provider(args.set_provider)
        if args.set_api_key is not None and exit_code == ExitCode.OK:
            exit_code = handle_set_api_key(args.set_api_key)
        return exit_code

    if not args.prompt:
        parser.print_usage()
        return ExitCode.USAGE

    return handle_translate(args.prompt)
