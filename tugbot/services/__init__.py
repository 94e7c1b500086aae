"""
Agent Services
==============

Container classification, docker access and the test container ticker.
"""

from .container import Container, MissingImageMetadata
from .docker_client import DockerClient, DockerClientError, LaunchFailure, ListFailure, exited_filter
from .ticker import TickerState, run_ticker_test_containers

__all__ = [
    "Container",
    "MissingImageMetadata",
    "DockerClient",
    "DockerClientError",
    "LaunchFailure",
    "ListFailure",
    "exited_filter",
    "TickerState",
    "run_ticker_test_containers",
]
