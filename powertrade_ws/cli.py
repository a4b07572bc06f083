"""Command line entry point for the Power.Trade WebSocket client."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config import SessionConfig
from .errors import PowerTradeConfigError, PowerTradeRetryBudgetExhausted
from .retry import RetrySupervisor
from .shutdown import ShutdownSignal, install_signal_handlers, remove_signal_handlers

_LOGGER = logging.getLogger(__name__)

ENV_FILES: dict[str, str] = {
    "development": ".env.dev",
    "test": ".env.test",
    "production": ".env.prod",
}

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="powertrade-ws",
        description="Authenticated WebSocket client for Power.Trade",
    )
    parser.add_argument(
        "environment",
        choices=sorted(ENV_FILES),
        help="Environment whose .env file is loaded",
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Load this file instead of the environment's default .env file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write logs to this file",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def configure_logging(level: str, log_file: str | None = None) -> None:
    """Send logs to the terminal and, optionally, to a file."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    _LOGGER.debug("Logging initialized at level %s", level)


def load_environment(environment: str, env_file: str | None = None) -> Path:
    """Load ``PT_*`` settings from the environment's .env file.

    Variables already present in the process environment win.
    """
    path = Path(env_file or ENV_FILES[environment])
    if not path.is_file():
        raise PowerTradeConfigError("env_file", f"{path} not found")
    load_dotenv(path, override=False)
    _LOGGER.info("Loaded %s settings from %s", environment, path)
    return path


async def run_client(config: SessionConfig, shutdown: ShutdownSignal | None = None) -> int:
    """Run the supervised session and map the outcome to an exit status."""
    if shutdown is None:
        shutdown = ShutdownSignal()
    installed = install_signal_handlers(shutdown)
    try:
        await RetrySupervisor(config, shutdown).run()
    except PowerTradeRetryBudgetExhausted as err:
        _LOGGER.error("Exiting Power.Trade ws client: %s", err)
        return EXIT_FAILURE
    finally:
        remove_signal_handlers(installed)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_file)
    _LOGGER.info(
        "Starting websocket client for power.trade %s (%s)",
        __version__,
        args.environment,
    )

    try:
        load_environment(args.environment, args.env_file)
        config = SessionConfig.from_env()
    except PowerTradeConfigError as err:
        _LOGGER.error("Configuration error: %s", err)
        return EXIT_CONFIG

    return asyncio.run(run_client(config))
