"""CLI argument parsing and agent startup."""

import argparse
import asyncio
import logging
import signal
import sys

from pydantic import ValidationError

from tugbot import __version__
from tugbot.config import Settings, load_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tugbot",
        description="Tugbot - re-runs exited test containers",
    )
    parser.add_argument("--version", action="version",
                        version=f"%(prog)s {__version__}")
    parser.add_argument("--interval", type=float,
                        help="Seconds between ticks (env: TUGBOT_INTERVAL)")
    parser.add_argument("--docker-bin",
                        help="Docker CLI binary (env: TUGBOT_DOCKER_BIN)")
    parser.add_argument("--log-level",
                        help="Log level (env: TUGBOT_LOG_LEVEL)")
    parser.add_argument("--host", help="API bind address (env: TUGBOT_HOST)")
    parser.add_argument("--port", type=int, help="API port (env: TUGBOT_PORT)")
    parser.add_argument(
        "--no-api",
        action="store_true",
        help="Run the ticker without the HTTP API",
    )
    return parser


async def run_headless(settings: Settings) -> None:
    """Run the ticker alone until SIGINT or SIGTERM."""
    from tugbot.services.docker_client import DockerClient
    from tugbot.services.ticker import run_ticker_test_containers

    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, cancel.set)

    client = DockerClient(docker_bin=settings.docker_bin, timeout=settings.docker_timeout)
    try:
        await run_ticker_test_containers(cancel, client, settings.interval)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(
            interval=args.interval,
            docker_bin=args.docker_bin,
            log_level=args.log_level,
            host=args.host,
            port=args.port,
        )
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    if args.no_api:
        asyncio.run(run_headless(settings))
        return

    # Lazy import to keep --help fast
    import uvicorn
    from tugbot.main import app

    app.state.settings = settings
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
