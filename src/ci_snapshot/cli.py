"""Command-line interface for CI-SNAPSHOT.

Provides commands for capturing CI API resources as static mock files.

Usage:
    ci-snapshot extract --pipelines github.com/acme/app,github.com/acme/api
    ci-snapshot extract --save-to-directory ./mocks --concurrency 5
    ci-snapshot pipelines --search app
"""

import argparse
import asyncio
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from pydantic import ValidationError

from ci_snapshot import __version__
from ci_snapshot.clients.ci_api import CIApiClient
from ci_snapshot.config import Settings
from ci_snapshot.errors import SnapshotError
from ci_snapshot.models import PipelinesListResponse
from ci_snapshot.pipeline.scheduler import SnapshotScheduler
from ci_snapshot.tracing import setup_tracing, shutdown_tracing

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=1)

# Flags that override the matching Settings field when given
_SETTINGS_FLAGS = (
    "api_base_url",
    "client_id",
    "client_secret",
    "pipelines_to_extract",
    "save_to_directory",
    "log_obfuscate_regex",
    "concurrency",
    "tail_running_logs",
)


def _add_connection_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--api-base-url",
        type=str,
        default=None,
        help="Base url of the CI API (env: API_BASE_URL)",
    )
    parser.add_argument(
        "--client-id",
        type=str,
        default=None,
        help="Client id used to obtain a token (env: CLIENT_ID)",
    )
    parser.add_argument(
        "--client-secret",
        type=str,
        default=None,
        help="Client secret used to obtain a token (env: CLIENT_SECRET)",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser.

    Returns:
        Configured ArgumentParser with all commands and arguments.
    """
    parser = argparse.ArgumentParser(
        prog="ci-snapshot",
        description="CI-SNAPSHOT — capture CI API resources as mock files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ci-snapshot extract --pipelines github.com/acme/app
  ci-snapshot extract --pipelines github.com/acme/app --save-to-directory ./mocks
  ci-snapshot pipelines --search acme

Every option can also be set through the environment variable named in its help.
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # extract command
    extract_parser = subparsers.add_parser(
        "extract",
        help="Snapshot pipelines with their builds, releases, logs and stats",
        description="Fetch, obfuscate and persist a snapshot of the given pipelines",
    )
    _add_connection_arguments(extract_parser)
    extract_parser.add_argument(
        "--pipelines",
        dest="pipelines_to_extract",
        type=str,
        default=None,
        help="Comma separated list of pipelines to extract (env: PIPELINES_TO_EXTRACT)",
    )
    extract_parser.add_argument(
        "--save-to-directory",
        type=str,
        default=None,
        help="Directory to store responses (env: SAVE_TO_DIRECTORY, default: ./mocks)",
    )
    extract_parser.add_argument(
        "--log-obfuscate-regex",
        type=str,
        default=None,
        help="Regular expression to obfuscate parts of the logs (env: LOG_OBFUSCATE_REGEX)",
    )
    extract_parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Maximum concurrent fetches per pipeline (env: CONCURRENCY, default: 10)",
    )
    extract_parser.add_argument(
        "--tail-running-logs",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Also capture the live log tail of running builds and releases",
    )

    # pipelines command
    pipelines_parser = subparsers.add_parser(
        "pipelines",
        help="List pipelines known to the CI API",
    )
    _add_connection_arguments(pipelines_parser)
    pipelines_parser.add_argument(
        "--search",
        type=str,
        default=None,
        help="Only pipelines matching this text",
    )
    pipelines_parser.add_argument(
        "--since",
        type=str,
        default=None,
        help="Only pipelines active since (e.g. 1d, 1w, eternity)",
    )
    pipelines_parser.add_argument(
        "--page-size",
        type=int,
        default=20,
        help="Number of pipelines to list (default: 20)",
    )
    pipelines_parser.add_argument(
        "--format",
        type=str,
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )

    # version command
    subparsers.add_parser(
        "version",
        help="Show version information",
    )

    return parser


def _run_async(coro):
    """Run an async coroutine from synchronous CLI context.

    Spins up a new event loop in a dedicated thread to avoid conflicts
    with any existing event loop.
    """
    def _target():
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(coro)
        finally:
            loop.close()

    future = _executor.submit(_target)
    return future.result()


def load_settings(args: argparse.Namespace) -> Settings:
    """Build Settings from the environment, overridden by given CLI flags."""
    overrides = {
        name: getattr(args, name)
        for name in _SETTINGS_FLAGS
        if getattr(args, name, None) is not None
    }
    return Settings(**overrides)


def cmd_extract(args: argparse.Namespace) -> int:
    """Execute the extract command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        settings = load_settings(args)
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 2

    logging.getLogger().setLevel(settings.log_level)

    if not settings.pipeline_paths:
        print("Error: no pipelines to extract (use --pipelines or PIPELINES_TO_EXTRACT)",
              file=sys.stderr)
        return 2

    provider = setup_tracing()
    try:
        logger.info(
            "Extracting %d pipelines into %s (concurrency=%d)",
            len(settings.pipeline_paths), settings.save_to_directory, settings.concurrency,
        )
        summary = _run_async(SnapshotScheduler(settings).run())

        print(
            f"Extracted {len(summary.pipelines_extracted)} pipelines "
            f"({summary.files_written} files) into {settings.save_to_directory}"
        )
        for path in summary.pipelines_skipped:
            print(f"Skipped {path}: not found")
        return 0

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except SnapshotError as e:
        logger.error("Snapshot failed: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        shutdown_tracing(provider)


async def _list_pipelines(
    settings: Settings,
    filters: dict[str, list[str]],
    page_size: int,
) -> PipelinesListResponse:
    async with CIApiClient(
        base_url=settings.api_base_url,
        timeout=settings.request_timeout,
        max_attempts=settings.max_attempts,
    ) as client:
        token = await client.get_token(settings.client_id, settings.client_secret)
        return await client.get_pipelines(token, page_size=page_size, filters=filters)


def cmd_pipelines(args: argparse.Namespace) -> int:
    """Execute the pipelines command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        settings = load_settings(args)
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 2

    filters: dict[str, list[str]] = {}
    if args.search:
        filters["search"] = [args.search]
    if args.since:
        filters["since"] = [args.since]

    try:
        response = _run_async(_list_pipelines(settings, filters, args.page_size))
    except SnapshotError as e:
        logger.error("Listing pipelines failed: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.format == "json":
        print(response.to_json().decode("utf-8"))
    else:
        for pipeline in response.items:
            print(pipeline.path)
        print(f"{len(response.items)} of {response.pagination.total_items} pipelines")
    return 0


def cmd_version(args: argparse.Namespace) -> int:
    """Execute the version command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    print(f"CI-SNAPSHOT v{__version__}")
    print("CI API snapshot extractor")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    parser = create_parser()
    args = parser.parse_args(argv)

    # Route to command handler
    if args.command == "extract":
        return cmd_extract(args)
    elif args.command == "pipelines":
        return cmd_pipelines(args)
    elif args.command == "version":
        return cmd_version(args)
    else:
        # No command specified
        parser.print_help()
        return 0


def cli_entry() -> None:
    """Console script entry point for setuptools."""
    sys.exit(main())


if __name__ == "__main__":
    cli_entry()
