"""
Docker Client
=============

Runtime client used by the ticker. Talks to the Docker daemon through the
`docker` CLI, the same way the rest of the tooling does.
"""

import json
import logging
import subprocess
from typing import Callable

from ..schemas import ContainerConfig, HostConfig
from .container import LABEL_CREATED_FROM, STATE_EXITED, Container

logger = logging.getLogger(__name__)

# Default timeout in seconds for a single docker command
DOCKER_TIMEOUT = 60

Filter = Callable[[Container], bool]


# =============================================================================
# Exceptions
# =============================================================================

class DockerClientError(Exception):
    """Base docker client exception."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class ListFailure(DockerClientError):
    """Containers could not be listed or inspected."""
    pass


class LaunchFailure(DockerClientError):
    """A container could not be created or started."""
    pass


# =============================================================================
# Filters
# =============================================================================

def exited_filter(container: Container) -> bool:
    """Accept containers that finished running."""
    return container.state() == STATE_EXITED


def all_filter(container: Container) -> bool:
    return True


# =============================================================================
# Client
# =============================================================================

class DockerClient:
    """Lists, inspects, creates and starts containers via the docker CLI."""

    def __init__(self, docker_bin: str = "docker", timeout: float = DOCKER_TIMEOUT):
        self.docker_bin = docker_bin
        self.timeout = timeout

    def _run(self, args: list[str], error_cls: type[DockerClientError]) -> str:
        """Run a docker command and return its stdout, raising `error_cls` on failure."""
        command = args[0]
        try:
            result = subprocess.run(
                [self.docker_bin, *args],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise error_cls(f"docker {command} timed out after {self.timeout}s") from e
        except OSError as e:
            raise error_cls(f"docker {command} could not be run: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.strip()
            raise error_cls(f"docker {command} failed: {stderr or f'exit code {result.returncode}'}", stderr)

        return result.stdout

    def is_available(self) -> bool:
        """Check if Docker is available and running."""
        try:
            self._run(["info"], DockerClientError)
            return True
        except DockerClientError:
            return False

    def _inspect(self, args: list[str]) -> dict:
        output = self._run(args, ListFailure)
        try:
            docs = json.loads(output)
        except json.JSONDecodeError as e:
            raise ListFailure(f"Invalid inspect output: {e}") from e
        if not docs:
            raise ListFailure(f"Empty inspect output for {args[-1]}")
        return docs[0]

    def inspect_container(self, container_id: str, image_cache: dict | None = None) -> Container:
        """
        Inspect a container and the image it was created from.

        The image snapshot is left empty when the image can't be inspected
        (e.g. it was removed after the container was created).
        """
        container_doc = self._inspect(["inspect", "--type", "container", container_id])
        return self._with_image(container_doc, image_cache)

    def _with_image(self, container_doc: dict, image_cache: dict | None = None) -> Container:
        """Pair an inspected container with its image snapshot."""
        container_id = container_doc.get("Id", "")
        image_id = container_doc.get("Image", "")
        if image_cache is not None and image_id in image_cache:
            image_doc = image_cache[image_id]
        else:
            image_doc = None
            if image_id:
                try:
                    image_doc = self._inspect(["image", "inspect", image_id])
                except ListFailure as e:
                    logger.warning(f"Failed to inspect image {image_id} of container {container_id}: {e}")
            if image_cache is not None:
                image_cache[image_id] = image_doc

        return Container.from_inspect(container_doc, image_doc)

    def list_containers(self, filter: Filter = all_filter) -> list[Container]:
        """
        List all containers accepted by `filter`.

        `filter` sees the container snapshot before its image is paired;
        images are only inspected for accepted containers.

        Raises:
            ListFailure: docker could not list the containers
        """
        output = self._run(["ps", "-a", "-q", "--no-trunc"], ListFailure)
        container_ids = [line.strip() for line in output.splitlines() if line.strip()]

        containers = []
        image_cache: dict = {}
        for container_id in container_ids:
            try:
                container_doc = self._inspect(["inspect", "--type", "container", container_id])
            except ListFailure as e:
                # Container may have been removed since it was listed
                logger.debug(f"Skipping container {container_id}: {e}")
                continue
            if not filter(Container.from_inspect(container_doc)):
                continue
            containers.append(self._with_image(container_doc, image_cache))

        return containers

    def start_container_from(self, container: Container) -> str:
        """
        Create and start a new container from the override config of `container`.

        Returns:
            ID of the new container

        Raises:
            MissingImageMetadata: `container` has no image snapshot
            LaunchFailure: docker could not create or start the container
        """
        config = container.runtime_config()
        host_config = container.host_config()

        args = build_create_args(config, host_config, container.name(), container.stop_signal())
        new_id = self._run(args, LaunchFailure).strip()
        if not new_id:
            raise LaunchFailure(f"docker create returned no container id for {container.name()}")

        links = container.links()
        logger.info(
            f"Starting container {new_id[:12]} from {container.name()} ({config.image})"
            + (f", linked to {links}" if links else "")
        )
        try:
            self._run(["start", new_id], LaunchFailure)
        except LaunchFailure:
            self._remove(new_id)
            raise
        return new_id

    def _remove(self, container_id: str) -> None:
        """Force-remove a container tugbot created but could not start."""
        try:
            self._run(["rm", "-f", container_id], DockerClientError)
            logger.info(f"Removed container {container_id[:12]} after failed start")
        except DockerClientError as e:
            logger.warning(f"Failed to remove container {container_id[:12]}: {e}")


def _publish_arg(port: str, host_ip: str, host_port: str) -> str:
    if host_ip:
        return f"{host_ip}:{host_port}:{port}"
    if host_port:
        return f"{host_port}:{port}"
    return port


def build_create_args(
    config: ContainerConfig,
    host_config: HostConfig,
    created_from: str,
    stop_signal: str = "",
) -> list[str]:
    """Translate an override config into `docker create` arguments."""
    args = ["create"]

    if config.working_dir:
        args += ["--workdir", config.working_dir]
    if config.user:
        args += ["--user", config.user]
    for entry in config.env:
        args += ["--env", entry]

    labels = dict(config.labels)
    labels[LABEL_CREATED_FROM] = created_from
    for key, value in labels.items():
        args += ["--label", f"{key}={value}"]

    for volume in config.volumes:
        args += ["--volume", volume]
    for port in config.exposed_ports:
        args += ["--expose", port]

    for bind in host_config.binds:
        args += ["--volume", bind]
    for port, bindings in host_config.port_bindings.items():
        if not bindings:
            args += ["--publish", port]
        for binding in bindings:
            args += ["--publish", _publish_arg(port, binding.host_ip, binding.host_port)]
    for link in host_config.links:
        args += ["--link", link.lstrip("/")]
    if host_config.network_mode and host_config.network_mode != "default":
        args += ["--network", host_config.network_mode]
    if host_config.privileged:
        args.append("--privileged")

    if stop_signal:
        args += ["--stop-signal", stop_signal]

    # The CLI takes a single entrypoint binary; its arguments go before the command
    command = list(config.cmd or [])
    if config.entrypoint is not None:
        args += ["--entrypoint", config.entrypoint[0] if config.entrypoint else ""]
        command = list(config.entrypoint[1:]) + command

    args.append(config.image)
    args += command
    return args
