"""
Configuration
=============

Agent settings read from TUGBOT_* environment variables. Values passed
explicitly (e.g. from the command line) take precedence.
"""

import os

from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "TUGBOT_"


class Settings(BaseModel):
    """Validated agent settings."""
    interval: float = Field(default=60.0, gt=0, description="Seconds between ticks")
    docker_bin: str = Field(default="docker", min_length=1)
    docker_timeout: float = Field(default=60.0, gt=0, description="Timeout for a single docker command")
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


def load_settings(**overrides) -> Settings:
    """
    Load settings from the environment.

    Args:
        **overrides: Explicit values; None values are ignored

    Raises:
        pydantic.ValidationError: if a value is invalid
    """
    values = {}
    for name in Settings.model_fields:
        env_value = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if env_value:
            values[name] = env_value

    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)
