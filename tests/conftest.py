"""
Pytest Configuration and Fixtures
=================================

Shared fixtures for the tugbot test suite: container snapshots built from
docker inspect documents and a mock runtime client.
"""

import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add project root to path for imports
import sys
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from tugbot.services.container import LABEL_TEST, Container


# =============================================================================
# Environment Setup
# =============================================================================

@pytest.fixture(autouse=True)
def clean_tugbot_env(monkeypatch):
    """Make sure TUGBOT_* variables from the host don't leak into tests."""
    for key in list(os.environ):
        if key.startswith("TUGBOT_"):
            monkeypatch.delenv(key)


# =============================================================================
# Container Fixtures
# =============================================================================

def make_container_doc(
    container_id: str = "02131b95b737",
    name: str = "/My Test Container",
    labels: dict | None = None,
    state: str = "exited",
    image: str = "alpine",
    image_id: str = "sha256:abc123",
    config: dict | None = None,
    host_config: dict | None = None,
) -> dict:
    """Build a `docker inspect` document for a container."""
    doc_config = {"Image": image, "Labels": labels or {}}
    doc_config.update(config or {})
    return {
        "Id": container_id,
        "Name": name,
        "Image": image_id,
        "Config": doc_config,
        "HostConfig": host_config if host_config is not None else {},
        "State": {"Status": state, "Running": state == "running", "ExitCode": 0},
    }


def make_image_doc(image_id: str = "sha256:abc123", config: dict | None = None) -> dict:
    """Build a `docker image inspect` document."""
    return {"Id": image_id, "RepoTags": ["alpine:latest"], "Config": config or {}}


def make_container(
    name: str = "My Test Container",
    container_id: str | None = None,
    labels: dict | None = None,
    state: str = "exited",
    image_config: dict | None = None,
    with_image: bool = True,
    **kwargs,
) -> Container:
    """Build a Container snapshot, optionally paired with an image."""
    container_doc = make_container_doc(
        container_id=container_id or f"{name}-id",
        name=f"/{name}",
        labels=labels,
        state=state,
        **kwargs,
    )
    image_doc = make_image_doc(config=image_config) if with_image else None
    return Container.from_inspect(container_doc, image_doc)


def make_test_container(name: str = "My Test Container", **kwargs) -> Container:
    """Build an exited container labeled as a test."""
    labels = {LABEL_TEST: "true"}
    labels.update(kwargs.pop("labels", None) or {})
    return make_container(name=name, labels=labels, **kwargs)


@pytest.fixture
def test_container() -> Container:
    """An exited test container that tugbot should re-run."""
    return make_test_container()


@pytest.fixture
def mock_client() -> MagicMock:
    """Runtime client whose calls succeed and list nothing."""
    client = MagicMock()
    client.list_containers.return_value = []
    client.start_container_from.return_value = "new-container-id"
    return client
