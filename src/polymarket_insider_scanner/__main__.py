"""CLI entry point for Polymarket Insider Scanner.

Usage:
    python -m polymarket_insider_scanner [options]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import logging.config
import sys
from typing import NoReturn

from pydantic import ValidationError

from polymarket_insider_scanner import __version__
from polymarket_insider_scanner.config import Settings, clear_settings_cache, get_settings
from polymarket_insider_scanner.scanner.factory import build_scanner
from polymarket_insider_scanner.scanner.health import HealthServer
from polymarket_insider_scanner.shutdown import GracefulShutdown

APP_NAME = "Polymarket Insider Scanner"
APP_VERSION = __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="polymarket-insider-scanner",
        description="Flag anomalous, possibly informed trades on Polymarket.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m polymarket_insider_scanner                     Scan live markets
  python -m polymarket_insider_scanner --simulation        Scan the simulated feed
  python -m polymarket_insider_scanner --backtest          Replay the insider scenario
  python -m polymarket_insider_scanner --config-check      Validate config and exit
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )
    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and exit without scanning",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )
    parser.add_argument(
        "--simulation",
        action="store_true",
        help="Use the simulated market feed instead of the live APIs",
    )
    parser.add_argument(
        "--backtest",
        action="store_true",
        help="Run the historical insider scenario once, print the alert and exit",
    )
    parser.add_argument(
        "--health-port",
        type=int,
        default=None,
        help="Override health check port (default: from settings)",
    )
    return parser


def configure_logging(level: str) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
            "aiohttp.access": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def print_config_summary(settings: Settings, simulation: bool) -> None:
    """Print a summary of the configuration."""
    summary = settings.redacted_summary()
    analyzer = summary["analyzer"]
    print("Configuration:")
    print(f"  Mode: {'simulation' if simulation else 'live'}")
    print(f"  Redis: {summary['redis_url']}")
    print(f"  Analyzer key: {analyzer['api_key'] if isinstance(analyzer, dict) else analyzer}")
    print(f"  Log Level: {summary['log_level']}")
    print(f"  Health Port: {summary['health_port']}")
    print()


def validate_config() -> Settings | None:
    """Load and validate configuration.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        clear_settings_cache()
        return get_settings()
    except ValidationError as e:
        print("Configuration validation failed:", file=sys.stderr)
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            print(f"  {field}: {error['msg']}", file=sys.stderr)
        return None


def run_config_check(settings: Settings) -> int:
    """Print the validated configuration and return the exit code."""
    print("Configuration is valid!")
    print()
    print(json.dumps(settings.redacted_summary(), indent=2))
    return EXIT_SUCCESS


async def run_backtest(settings: Settings) -> int:
    """Replay the insider scenario once against the simulated feed.

    Returns:
        Exit code (0 when the scenario was flagged).
    """
    logger = logging.getLogger(__name__)
    scheduler = build_scanner(settings, simulation=True)
    try:
        alert = await scheduler.run_backtest()
    finally:
        await scheduler.close()

    print(scheduler.status)
    if alert is None:
        logger.warning("Backtest scenario produced no alert")
        return EXIT_ERROR
    print(json.dumps(alert.to_dict(), indent=2))
    return EXIT_SUCCESS


async def run_scanner(settings: Settings, simulation: bool, health_port: int) -> int:
    """Run the scanner until a shutdown signal arrives.

    Args:
        settings: Application settings.
        simulation: Whether to use the simulated feed.
        health_port: Port of the health HTTP server.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)

    try:
        async with GracefulShutdown() as shutdown:
            scheduler = build_scanner(settings, simulation=simulation)
            health = HealthServer(scheduler)

            # Cleanup runs in registration order
            shutdown.register_cleanup(health.stop)
            shutdown.register_cleanup(scheduler.close)

            await health.start(port=health_port)
            logger.info("Starting scanner...")
            await scheduler.start()
            logger.info("Scanner running. Press Ctrl+C to stop.")

            await shutdown.wait()
            logger.info("Shutdown signal received, stopping scanner...")

        return EXIT_SUCCESS
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception("Scanner failed: %s", e)
        return EXIT_ERROR


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = validate_config()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    configure_logging(args.log_level or settings.log_level)
    print(f"{APP_NAME} v{APP_VERSION}")

    if args.config_check:
        sys.exit(run_config_check(settings))

    if args.backtest:
        sys.exit(asyncio.run(run_backtest(settings)))

    simulation = args.simulation or settings.scanner.simulation
    health_port = args.health_port or settings.health_port
    print_config_summary(settings, simulation)

    exit_code = asyncio.run(run_scanner(settings, simulation, health_port))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
