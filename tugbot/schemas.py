"""
Pydantic Schemas
================

Models for the Docker inspect documents consumed by the agent and the
response models for the API endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ============================================================================
# Docker Inspect Schemas
# ============================================================================


class _DockerModel(BaseModel):
    """Base for models parsed from `docker inspect` output."""
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class PortBinding(_DockerModel):
    """Host side of a published port."""
    host_ip: str = Field(default="", alias="HostIp")
    host_port: str = Field(default="", alias="HostPort")


class ContainerConfig(_DockerModel):
    """Launch configuration of a container or the defaults of an image."""
    image: str = Field(default="", alias="Image")
    working_dir: str = Field(default="", alias="WorkingDir")
    user: str = Field(default="", alias="User")
    cmd: list[str] | None = Field(default=None, alias="Cmd")
    entrypoint: list[str] | None = Field(default=None, alias="Entrypoint")
    env: list[str] = Field(default_factory=list, alias="Env")
    labels: dict[str, str] = Field(default_factory=dict, alias="Labels")
    volumes: dict[str, dict] = Field(default_factory=dict, alias="Volumes")
    exposed_ports: dict[str, dict] = Field(default_factory=dict, alias="ExposedPorts")
    stop_signal: str = Field(default="", alias="StopSignal")

    @field_validator("env", mode="before")
    @classmethod
    def null_env(cls, v):
        return [] if v is None else v

    @field_validator("labels", "volumes", "exposed_ports", mode="before")
    @classmethod
    def null_mapping(cls, v):
        # docker reports empty mappings as null
        return {} if v is None else v

    @field_validator("cmd", "entrypoint", mode="before")
    @classmethod
    def split_string_command(cls, v):
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("stop_signal", mode="before")
    @classmethod
    def null_stop_signal(cls, v):
        return "" if v is None else v


class HostConfig(_DockerModel):
    """Host-level options of a container."""
    binds: list[str] = Field(default_factory=list, alias="Binds")
    links: list[str] = Field(default_factory=list, alias="Links")
    port_bindings: dict[str, list[PortBinding]] = Field(default_factory=dict, alias="PortBindings")
    network_mode: str = Field(default="", alias="NetworkMode")
    privileged: bool = Field(default=False, alias="Privileged")

    @field_validator("binds", "links", mode="before")
    @classmethod
    def null_list(cls, v):
        return [] if v is None else v

    @field_validator("port_bindings", mode="before")
    @classmethod
    def null_port_bindings(cls, v):
        if v is None:
            return {}
        return {port: bindings or [] for port, bindings in v.items()}


class ContainerState(_DockerModel):
    """Lifecycle state of a container."""
    status: str = Field(default="", alias="Status")
    running: bool = Field(default=False, alias="Running")
    exit_code: int = Field(default=0, alias="ExitCode")


class ContainerInfo(_DockerModel):
    """Result of `docker inspect <container>`."""
    id: str = Field(alias="Id")
    name: str = Field(default="", alias="Name")
    image: str = Field(default="", alias="Image")
    config: ContainerConfig = Field(default_factory=ContainerConfig, alias="Config")
    host_config: HostConfig | None = Field(default=None, alias="HostConfig")
    state: ContainerState = Field(default_factory=ContainerState, alias="State")


class ImageInfo(_DockerModel):
    """Result of `docker image inspect <image>`."""
    id: str = Field(alias="Id")
    repo_tags: list[str] = Field(default_factory=list, alias="RepoTags")
    config: ContainerConfig = Field(default_factory=ContainerConfig, alias="Config")

    @field_validator("repo_tags", mode="before")
    @classmethod
    def null_repo_tags(cls, v):
        return [] if v is None else v


# ============================================================================
# API Schemas
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    docker: bool


class TickerStatus(BaseModel):
    """Current state of the test container ticker."""
    running: bool
    interval: float
    ticks: int = 0
    launched: int = 0
    failures: int = 0
    last_tick_at: datetime | None = None
    last_error: str | None = None
