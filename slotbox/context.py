"""
Per-invocation project context.

A ProjectContext is built once per CLI invocation and passed to every
component call, so no component reads process-wide state for the project
directory, identity, data root, or configuration.
"""

from dataclasses import dataclass, field
from pathlib import Path

from slotbox.config.loader import load_global_config
from slotbox.config.models import GlobalConfig
from slotbox.utils.hash import canonical_path, data_root_for, identity_for


@dataclass(frozen=True)
class ProjectContext:
    """Everything a component needs to know about the project being operated on."""

    project_dir: Path
    identity: str
    data_root: Path
    config: GlobalConfig = field(default_factory=GlobalConfig)
    verbose: bool = False

    @classmethod
    def from_path(
        cls,
        project_dir: str | Path,
        config: GlobalConfig | None = None,
        verbose: bool = False,
    ) -> "ProjectContext":
        """
        Build the context for a project directory.

        Args:
            project_dir: Project directory (usually the current directory)
            config: Global config; loaded from ~/.slotbox/config.yml when None
            verbose: Forward verbose mode into containers

        Returns:
            ProjectContext with a created data root

        Raises:
            InvalidPathError: If the project path cannot be canonicalized
        """
        resolved = canonical_path(project_dir)
        identity = identity_for(resolved)
        return cls(
            project_dir=resolved,
            identity=identity,
            data_root=data_root_for(identity),
            config=config if config is not None else load_global_config(),
            verbose=verbose,
        )

    @property
    def project_name(self) -> str:
        return self.project_dir.name

    @property
    def image_repository(self) -> str:
        return f"slotbox-{self.identity}"

    @property
    def image_tag(self) -> str:
        """The single live image tag for this project."""
        return f"{self.image_repository}:latest"

    @property
    def slots_dir(self) -> Path:
        return self.data_root / "slots"

    @property
    def profiles_file(self) -> Path:
        return self.data_root / "profiles.ini"

    def slot_container_name(self, ordinal: int) -> str:
        """Container name that binds a running container to a slot."""
        return f"slotbox-{self.identity}-slot-{ordinal}"
