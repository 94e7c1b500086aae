"""
FastAPI Main Server
===================

Hosts the test container ticker as a background task and exposes its
health over HTTP.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from . import __version__
from .config import Settings, load_settings
from .routers import health_router
from .services.docker_client import DockerClient
from .services.ticker import TickerState, run_ticker_test_containers

logger = logging.getLogger(__name__)


async def start_ticker(app: FastAPI, settings: Settings) -> asyncio.Task:
    """Create the docker client and start the ticker task for `app`."""
    client = DockerClient(docker_bin=settings.docker_bin, timeout=settings.docker_timeout)
    if not await asyncio.to_thread(client.is_available):
        logger.warning("Docker is not available, ticks will fail until it is")

    app.state.docker_client = client
    app.state.ticker_state = TickerState(settings.interval)
    app.state.cancel_event = asyncio.Event()

    return asyncio.create_task(
        run_ticker_test_containers(
            app.state.cancel_event,
            client,
            settings.interval,
            state=app.state.ticker_state,
        )
    )


async def stop_ticker(app: FastAPI, task: asyncio.Task) -> None:
    """Signal the ticker to stop and wait for it to finish its current launch."""
    app.state.cancel_event.set()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception as e:
        logger.exception(f"Ticker exited with error: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the ticker on startup, stop it on shutdown."""
    settings = getattr(app.state, "settings", None) or load_settings()
    app.state.settings = settings

    logger.info(f"Starting tugbot {__version__}")
    task = await start_ticker(app, settings)

    yield

    logger.info("Shutting down tugbot...")
    await stop_ticker(app, task)


app = FastAPI(
    title="Tugbot",
    description="Re-runs exited test containers",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(health_router)
