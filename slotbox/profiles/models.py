"""
Pydantic models for profile definitions and build steps.

A profile is one of three kinds:
- packages: installs a list of apt packages
- scripted: runs a bespoke install procedure (rustup, nvm, tarballs)
- versioned: like scripted, but templated with a runtime version that is
  detected from the project (see slotbox.profiles.versions)

Profiles produce structured build steps. Only the DockerfileGenerator turns
steps into Dockerfile text.
"""

import re
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class PackageInstallStep(BaseModel):
    """Install apt packages as root."""

    type: Literal["packages"] = "packages"
    packages: list[str] = Field(..., min_length=1, description="apt package names")


class ScriptStep(BaseModel):
    """Run shell commands, each as its own layer."""

    type: Literal["script"] = "script"
    commands: list[str] = Field(..., min_length=1, description="Shell commands to RUN")
    user: str | None = Field(default=None, description="Run as this user (None for root)")
    comment: str | None = Field(default=None, description="Comment emitted above the commands")


class EnvStep(BaseModel):
    """Set image environment variables."""

    type: Literal["env"] = "env"
    values: dict[str, str] = Field(..., min_length=1)


BuildStep = Annotated[PackageInstallStep | ScriptStep | EnvStep, Field(discriminator="type")]


class RuntimeVersionSpec(BaseModel):
    """Where to look for a language runtime version in a project."""

    tool: str = Field(..., description="Tool name used in mise.toml and .tool-versions")
    version_files: list[str] = Field(
        default_factory=list, description="Dedicated version files, first match wins"
    )
    manifest: Literal["gemfile", "go_mod", "package_json"] | None = Field(
        default=None, description="Ecosystem manifest carrying a version directive"
    )
    default: str = Field(..., description="Built-in default version")
    pattern: str = Field(
        default=r"^[0-9]+\.[0-9]+(\.[0-9]+)?$", description="Accepted version format"
    )

    @property
    def env_var(self) -> str:
        """Environment variable that overrides every project signal."""
        return f"SLOTBOX_{self.tool.upper()}_VERSION"

    def is_valid(self, version: str) -> bool:
        return re.match(self.pattern, version) is not None


def _substitute(text: str, version: str | None, user: str) -> str:
    if version is not None:
        text = text.replace("${VERSION}", version)
    return text.replace("${USER}", user)


class ProfileDefinition(BaseModel):
    """Definition of a development profile in the catalog."""

    name: str = Field(..., description="Profile identifier (e.g., 'python', 'build-tools')")
    description: str = Field(..., description="Human-readable description")
    kind: Literal["packages", "scripted", "versioned"] = Field(default="packages")
    packages: list[str] = Field(default_factory=list, description="apt packages to install")
    requires: list[str] = Field(
        default_factory=list, description="Prerequisite profiles, in build order"
    )
    steps: list[BuildStep] = Field(default_factory=list, description="Bespoke install steps")
    version: RuntimeVersionSpec | None = Field(default=None)

    @field_validator("name")
    @classmethod
    def validate_name_format(cls, v: str) -> str:
        """Ensure profile name is lowercase alphanumeric with hyphens."""
        if not re.match(r"^[a-z0-9-]+$", v):
            raise ValueError(f"profile name '{v}' must be lowercase alphanumeric with hyphens only")
        return v

    @model_validator(mode="after")
    def validate_kind(self) -> "ProfileDefinition":
        """Check that each kind carries what it needs."""
        if self.kind == "packages" and self.steps:
            raise ValueError(f"packages profile '{self.name}' cannot define install steps")
        if self.kind == "versioned" and self.version is None:
            raise ValueError(f"versioned profile '{self.name}' needs a version spec")
        if self.kind != "versioned" and self.version is not None:
            raise ValueError(f"only versioned profiles take a version spec, got '{self.name}'")
        return self

    def build_steps(self, user: str, version: str | None = None) -> list[BuildStep]:
        """
        Get the build steps for this profile.

        Args:
            user: Container user, substituted for ${USER}
            version: Resolved runtime version, substituted for ${VERSION}

        Returns:
            Package install step (when the profile has packages) followed by
            the profile's own steps with placeholders replaced
        """
        steps: list[BuildStep] = []
        if self.packages:
            steps.append(PackageInstallStep(packages=list(self.packages)))

        for step in self.steps:
            if isinstance(step, ScriptStep):
                steps.append(
                    step.model_copy(
                        update={
                            "commands": [_substitute(c, version, user) for c in step.commands],
                            "user": _substitute(step.user, version, user) if step.user else None,
                            "comment": (
                                _substitute(step.comment, version, user) if step.comment else None
                            ),
                        }
                    )
                )
            elif isinstance(step, EnvStep):
                steps.append(
                    EnvStep(
                        values={k: _substitute(v, version, user) for k, v in step.values.items()}
                    )
                )
            else:
                steps.append(step)

        return steps
