"""Maintenance commands for scheduled jobs and operators.

Usage:
    python -m commercepix.cli cleanup-usage-counters
    python -m commercepix.cli recover-jobs

Examples:
    # Delete expired rate-limit counters (run hourly from cron)
    python -m commercepix.cli cleanup-usage-counters

    # Fail jobs left running by a crashed process
    python -m commercepix.cli recover-jobs -v
"""

import asyncio
import sys
from argparse import ArgumentParser, Namespace
from typing import Optional, Sequence

import structlog

from commercepix.core import timezone  # noqa: F401
from commercepix.core.config import Settings, configure_logging
from commercepix.core.database import setup_db_session
from commercepix.services.rate_limit import RateLimiter
from commercepix.uow import create_uow_factory
from commercepix.workers.generation_worker import recover_orphaned_jobs

logger = structlog.get_logger()


def parse_args(argv: Optional[Sequence[str]] = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(description="CommercePix maintenance commands")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser(
        "cleanup-usage-counters",
        help="Delete rate-limit counters older than 2 minutes (per-minute) or 2 days (per-day)",
    )
    subparsers.add_parser(
        "recover-jobs",
        help="Mark generation jobs stuck in 'running' as failed",
    )

    return parser.parse_args(argv)


async def cleanup_usage_counters(settings: Settings, session_factory) -> int:
    limiter = RateLimiter(
        create_uow_factory(session_factory),
        per_minute_limit=settings.rate_limit_per_minute,
        per_day_limit=settings.rate_limit_per_day,
    )
    deleted = await limiter.cleanup_old_counters()
    print(f"Deleted {deleted} expired usage counters")
    return 0


async def recover_jobs(settings: Settings, session_factory) -> int:
    recovered = await recover_orphaned_jobs(session_factory)
    print(f"Marked {recovered} interrupted jobs as failed")
    return 0


COMMANDS = {
    "cleanup-usage-counters": cleanup_usage_counters,
    "recover-jobs": recover_jobs,
}


async def async_main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point (async).

    Returns:
        Exit code: 0 (success), 1 (error), 130 (interrupted)
    """
    args = parse_args(argv)

    settings = Settings()  # type: ignore[call-arg]
    if args.verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings)

    logger.info("cli.started", command=args.command)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)

    try:
        exit_code = await COMMANDS[args.command](settings, session_factory)
        logger.info("cli.completed", command=args.command)
        return exit_code

    except KeyboardInterrupt:
        logger.info("cli.interrupted", command=args.command)
        print("\nInterrupted by user", file=sys.stderr)
        return 130

    except Exception as e:
        logger.error(
            "cli.unexpected_error",
            command=args.command,
            error=str(e),
            error_type=type(e).__name__,
        )
        print(f"\nUnexpected error: {e}", file=sys.stderr)
        return 1


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Synchronous entry point for CLI."""
    sys.exit(asyncio.run(async_main(argv)))


if __name__ == "__main__":
    main()
