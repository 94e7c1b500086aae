"""
Container
=========

Snapshot of a Docker container's metadata, paired with the image it was
created from, and the rules tugbot applies to it:

- whether the container is tugbot itself
- whether it is a test container waiting to be re-run
- the override-only launch configuration used to re-create it

Snapshots carry no mutable "stale" marker; staleness is found by listing
again.
"""

from typing import Any

from ..schemas import ContainerConfig, ContainerInfo, HostConfig, ImageInfo

# Docker labels from container metadata
LABEL_TUGBOT = "tugbot"
LABEL_TEST = "tugbot.test"
LABEL_CREATED_FROM = "tugbot.created.from"
LABEL_STOP_SIGNAL = "tugbot.stop-signal"
LABEL_ZODIAC = "tugbot.zodiac.original-image"

STATE_EXITED = "exited"
DEFAULT_TAG = "latest"


class MissingImageMetadata(Exception):
    """The container has no image snapshot to diff its configuration against."""

    def __init__(self, container_name: str):
        super().__init__(f"No image metadata for container {container_name}")
        self.container_name = container_name


def _map_subtract(values: dict, defaults: dict) -> dict:
    """Keep the entries of `values` that are missing from or differ in `defaults`."""
    return {k: v for k, v in values.items() if k not in defaults or defaults[k] != v}


class Container:
    """
    Immutable snapshot of a container taken at inspection time.

    Nothing here tracks the live container; callers re-list to see changes.
    """

    def __init__(self, info: ContainerInfo, image_info: ImageInfo | None = None):
        self._info = info
        self._image_info = image_info

    @classmethod
    def from_inspect(cls, container_doc: dict[str, Any], image_doc: dict[str, Any] | None = None) -> "Container":
        """Build a Container from raw `docker inspect` documents."""
        info = ContainerInfo.model_validate(container_doc)
        image_info = ImageInfo.model_validate(image_doc) if image_doc else None
        return cls(info, image_info)

    def __repr__(self) -> str:
        return f"Container(id={self.id()[:12]!r}, name={self.name()!r}, state={self.state()!r})"

    @property
    def info(self) -> ContainerInfo:
        return self._info

    @property
    def image_info(self) -> ImageInfo | None:
        return self._image_info

    @property
    def labels(self) -> dict[str, str]:
        return self._info.config.labels

    def id(self) -> str:
        """Docker container ID."""
        return self._info.id

    def name(self) -> str:
        """Container name without docker's leading slash."""
        return self._info.name.removeprefix("/")

    def state(self) -> str:
        return self._info.state.status

    def has_image_info(self) -> bool:
        return self._image_info is not None

    def image_id(self) -> str:
        """ID of the image the container was created from."""
        if self._image_info is None:
            raise MissingImageMetadata(self.name())
        return self._image_info.id

    def image_name(self) -> str:
        """
        Name of the image the container was started from.

        The zodiac label wins over the recorded image reference. A reference
        without a tag is assumed to mean the "latest" tag.
        """
        image_name = self.labels.get(LABEL_ZODIAC)
        if image_name is None:
            image_name = self._info.config.image

        # a ':' before the last '/' is a registry port, not a tag
        last_segment = image_name.rsplit("/", 1)[-1]
        if ":" not in last_segment and "@" not in last_segment:
            image_name = f"{image_name}:{DEFAULT_TAG}"

        return image_name

    def links(self) -> list[str]:
        """Names of all the containers this container is linked to."""
        if self._info.host_config is None:
            return []
        return [link.split(":", 1)[0] for link in self._info.host_config.links]

    def stop_signal(self) -> str:
        """Custom stop signal from the container labels, or "" if not set."""
        return self.labels.get(LABEL_STOP_SIGNAL, "")

    def is_tugbot(self) -> bool:
        """Whether this is the tugbot container itself."""
        return self.labels.get(LABEL_TUGBOT) == "true"

    def is_tugbot_candidate(self) -> bool:
        """
        Whether this container should be re-run by tugbot.

        A candidate is labeled as a test, was not itself created by tugbot,
        and has finished its previous run ("exited"). Any other state,
        "paused" and "created" included, is not re-launchable.
        """
        if self.labels.get(LABEL_TEST) != "true":
            return False
        if self.labels.get(LABEL_CREATED_FROM):
            return False
        return self.state() == STATE_EXITED

    def runtime_config(self) -> ContainerConfig:
        """
        Launch configuration holding only the options overridden at runtime.

        The config returned by inspect merges the image defaults with the
        options given on `docker run`. Re-submitting it as-is would pin the
        image defaults on the new container, so every value equal to the
        image default is dropped here.

        Raises:
            MissingImageMetadata: no image snapshot to compare against
        """
        if self._image_info is None:
            raise MissingImageMetadata(self.name())

        config = self._info.config
        image_config = self._image_info.config

        update: dict[str, Any] = {}

        if config.working_dir == image_config.working_dir:
            update["working_dir"] = ""

        if config.user == image_config.user:
            update["user"] = ""

        if config.cmd == image_config.cmd:
            update["cmd"] = None

        if config.entrypoint == image_config.entrypoint:
            update["entrypoint"] = None

        image_env = set(image_config.env)
        update["env"] = [e for e in config.env if e not in image_env]

        update["labels"] = _map_subtract(config.labels, image_config.labels)
        update["volumes"] = _map_subtract(config.volumes, image_config.volumes)

        exposed_ports = _map_subtract(config.exposed_ports, image_config.exposed_ports)
        # published ports were requested explicitly at run time
        if self._info.host_config is not None:
            for port in self._info.host_config.port_bindings:
                exposed_ports.setdefault(port, {})
        update["exposed_ports"] = exposed_ports

        update["image"] = self.image_name()

        return config.model_copy(update=update, deep=True)

    def host_config(self) -> HostConfig:
        """
        Host config ready to be re-submitted on create.

        Inspect reports link aliases fully qualified ("/db:/web/db"); create
        only accepts the short alias ("/db:db").
        """
        host_config = self._info.host_config or HostConfig()

        links = []
        for link in host_config.links:
            name, sep, alias = link.partition(":")
            if not sep:
                links.append(link)
                continue
            links.append(f"{name}:{alias.rsplit('/', 1)[-1]}")

        return host_config.model_copy(update={"links": links}, deep=True)
