"""
Test Container Ticker
=====================

Periodically finds exited test containers and re-runs each one from its
original image. Runs until the cancel event is set (or its task is
cancelled).

Calls into the runtime client are not given a timeout here; a client call
that never returns stalls the loop.
"""

import asyncio
import logging
from datetime import datetime
from typing import Protocol

from ..schemas import TickerStatus
from .container import Container, MissingImageMetadata
from .docker_client import Filter, LaunchFailure, ListFailure, exited_filter

logger = logging.getLogger(__name__)

# Default interval between ticks in seconds
DEFAULT_INTERVAL = 60


class RuntimeClient(Protocol):
    def list_containers(self, filter: Filter) -> list[Container]: ...

    def start_container_from(self, container: Container) -> object: ...


class TickerState:
    """Counters describing a running ticker, exposed on the status endpoint."""

    def __init__(self, interval: float = DEFAULT_INTERVAL):
        self.interval = interval
        self.running = False
        self.ticks = 0
        self.launched = 0
        self.failures = 0
        self.last_tick_at: datetime | None = None
        self.last_error: str | None = None

    def record_error(self, message: str) -> None:
        self.failures += 1
        self.last_error = message

    def to_status(self) -> TickerStatus:
        return TickerStatus(
            running=self.running,
            interval=self.interval,
            ticks=self.ticks,
            launched=self.launched,
            failures=self.failures,
            last_tick_at=self.last_tick_at,
            last_error=self.last_error,
        )


async def _wait_for_cancel(cancel: asyncio.Event, timeout: float) -> bool:
    """Wait up to `timeout` seconds; return True if cancellation was requested."""
    if cancel.is_set():
        return True
    if timeout <= 0:
        await asyncio.sleep(0)
        return cancel.is_set()
    try:
        await asyncio.wait_for(cancel.wait(), timeout=timeout)
        return True
    except asyncio.TimeoutError:
        return False


async def run_tick(
    cancel: asyncio.Event,
    client: RuntimeClient,
    log: logging.Logger,
    state: TickerState,
) -> None:
    """List exited containers and start every test candidate among them."""
    state.ticks += 1
    state.last_tick_at = datetime.now()

    try:
        containers = await asyncio.to_thread(client.list_containers, exited_filter)
    except ListFailure as e:
        log.warning(f"Failed to list containers: {e}")
        state.record_error(str(e))
        return
    except Exception as e:
        log.exception(f"Unexpected error listing containers: {e}")
        state.record_error(str(e))
        return

    log.debug(f"Tick {state.ticks}: {len(containers)} exited containers")

    for container in containers:
        if cancel.is_set():
            log.debug("Cancellation requested, leaving tick early")
            return

        if container.is_tugbot() or not container.is_tugbot_candidate():
            continue

        try:
            await asyncio.to_thread(client.start_container_from, container)
        except MissingImageMetadata as e:
            log.warning(f"Not running {container.name()}: {e}")
            state.record_error(str(e))
            continue
        except LaunchFailure as e:
            log.error(f"Failed to run test container {container.name()}: {e}")
            state.record_error(str(e))
            continue
        except Exception as e:
            log.exception(f"Unexpected error running test container {container.name()}: {e}")
            state.record_error(str(e))
            continue

        state.launched += 1
        log.info(f"Running test container {container.name()}")


async def run_ticker_test_containers(
    cancel: asyncio.Event,
    client: RuntimeClient,
    interval: float = DEFAULT_INTERVAL,
    log: logging.Logger | None = None,
    state: TickerState | None = None,
) -> None:
    """
    Run test containers on every tick until `cancel` is set.

    The first tick fires immediately, the next ones every `interval`
    seconds. A tick that runs longer than `interval` makes the ticks it
    overlapped get skipped. Errors from listing or starting containers are
    logged and never stop the loop.

    Args:
        cancel: Event that stops the loop once set
        client: Runtime client providing list_containers/start_container_from
        interval: Seconds between ticks
        log: Logger to use instead of the module logger
        state: Optional TickerState updated as the loop runs
    """
    log = log or logger
    state = state or TickerState(interval)
    state.interval = interval
    state.running = True

    loop = asyncio.get_running_loop()
    log.info(f"Starting test container ticker (interval: {interval}s)")

    try:
        next_tick = loop.time()
        while not cancel.is_set():
            await run_tick(cancel, client, log, state)

            next_tick += interval
            now = loop.time()
            if next_tick < now:
                # drop the ticks missed while this one was running
                if interval > 0:
                    next_tick += ((now - next_tick) // interval + 1) * interval
                else:
                    next_tick = now

            if await _wait_for_cancel(cancel, next_tick - now):
                break
    except asyncio.CancelledError:
        log.info("Test container ticker cancelled")
        raise
    finally:
        state.running = False

    log.info("Test container ticker stopped")
