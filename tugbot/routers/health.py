"""
Health Router
=============

Health check and ticker status endpoints.
"""

import asyncio

from fastapi import APIRouter, Request

from ..schemas import HealthResponse, TickerStatus

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Report whether the agent can reach the Docker daemon."""
    client = request.app.state.docker_client
    docker_ok = await asyncio.to_thread(client.is_available)
    return HealthResponse(docker=docker_ok)


@router.get("/ticker/status", response_model=TickerStatus)
async def ticker_status(request: Request):
    """Get the current state of the test container ticker."""
    return request.app.state.ticker_state.to_status()
