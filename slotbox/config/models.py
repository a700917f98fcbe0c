"""
Pydantic models for slotbox configuration.

These models provide type-safe configuration with validation:
- MountConfig: Extra host directory mounted into every container
- DockerConfig: Image build and container run settings
- SlotsConfig: Slot limits
- GlobalConfig: Everything in ~/.slotbox/config.yml
"""

import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class MountConfig(BaseModel):
    """Configuration for a Docker volume mount."""

    source: str = Field(..., description="Host path to mount")
    target: str = Field(
        ..., description="Container path to mount to; ~/ is the container user's home"
    )
    mode: Literal["rw", "ro"] = Field(
        default="ro", description="Mount mode: read-write or read-only"
    )

    @field_validator("source")
    @classmethod
    def validate_source_not_empty(cls, v: str) -> str:
        """Ensure source path is not empty."""
        if not v or not v.strip():
            raise ValueError("source path cannot be empty")
        return v.strip()

    @field_validator("target")
    @classmethod
    def validate_target_not_empty(cls, v: str) -> str:
        """Ensure target path is absolute or relative to the container home."""
        if not v or not v.strip():
            raise ValueError("target path cannot be empty")
        if not v.strip().startswith(("/", "~/")):
            raise ValueError(f"target path must be absolute or start with ~/, got '{v}'")
        return v.strip()


def _default_mounts() -> list[MountConfig]:
    return [MountConfig(source="~/.ssh", target="~/.ssh", mode="ro")]


class DockerConfig(BaseModel):
    """Docker configuration."""

    base_image: str = Field(default="debian:bookworm", description="Base Docker image to use")
    user: str = Field(default="claude", description="Unprivileged user inside the container")
    build_args: dict[str, str] = Field(
        default_factory=lambda: {"NODE_VERSION": "22", "DELTA_VERSION": "0.17.0"},
        description="Extra build-arg pins; part of the image fingerprint",
    )
    attach_timeout: float = Field(
        default=30.0, gt=0, description="Seconds to wait for a detached container to respond"
    )
    poll_interval: float = Field(
        default=0.1, gt=0, le=5, description="Seconds between liveness probes when attaching"
    )

    @field_validator("user")
    @classmethod
    def validate_user_format(cls, v: str) -> str:
        """Ensure the user name is a valid POSIX login name."""
        if not re.match(r"^[a-z_][a-z0-9_-]*$", v):
            raise ValueError(f"user '{v}' must be a lowercase POSIX user name")
        return v


class SlotsConfig(BaseModel):
    """Slot limits."""

    max_slots: int = Field(default=10, ge=1, le=99, description="Maximum slots per project")


class GlobalConfig(BaseModel):
    """Global configuration."""

    version: str = Field(default="1.0", description="Config file version")
    docker: DockerConfig = Field(default_factory=DockerConfig, description="Docker configuration")
    slots: SlotsConfig = Field(default_factory=SlotsConfig, description="Slot configuration")
    mounts: list[MountConfig] = Field(
        default_factory=_default_mounts,
        description="Host credential directories mounted into every container",
    )
