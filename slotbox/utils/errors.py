"""
Custom exception classes for slotbox.

All slotbox exceptions inherit from SlotboxError and include:
- A one-line description of what went wrong
- The concrete next command to resolve it, where one exists
- Optional documentation links
"""


class SlotboxError(Exception):
    """Base exception class for all slotbox errors."""

    def __init__(
        self, message: str, suggestion: str | None = None, doc_link: str | None = None
    ) -> None:
        """
        Initialize a slotbox error.

        Args:
            message: Clear description of what went wrong
            suggestion: Actionable suggestion for how to fix the issue
            doc_link: Optional URL to relevant documentation
        """
        self.message = message
        self.suggestion = suggestion
        self.doc_link = doc_link

        full_message = message
        if suggestion:
            full_message += f"\n\nSuggestion: {suggestion}"
        if doc_link:
            full_message += f"\n\nSee: {doc_link}"

        super().__init__(full_message)


# Configuration Errors


class ConfigError(SlotboxError):
    """Base exception for configuration-related errors."""


class InvalidConfigError(ConfigError):
    """Raised when configuration is invalid or fails validation."""


class ConfigNotFoundError(ConfigError):
    """Raised when a required configuration file is not found."""


# Project Errors


class InvalidPathError(SlotboxError):
    """Raised when a project path cannot be canonicalized."""


class LockError(SlotboxError):
    """Raised when the per-project lock file cannot be acquired."""


# Docker Errors


class DockerError(SlotboxError):
    """Base exception for Docker-related errors."""


class RuntimeUnavailableError(DockerError):
    """Raised when Docker is not installed or not reachable."""


class BuildFailedError(DockerError):
    """Raised when the Docker image build fails."""


class ContainerStartError(DockerError):
    """Raised when a container fails to start."""


class AttachTimeoutError(DockerError):
    """Raised when a detached container never becomes responsive."""


# Profile Errors


class ProfileError(SlotboxError):
    """Base exception for profile-related errors."""


class UnknownProfileError(ProfileError):
    """Raised when one or more requested profiles are not in the catalog."""

    def __init__(self, profile_ids: list[str]) -> None:
        self.profile_ids = profile_ids
        names = ", ".join(profile_ids)
        super().__init__(
            message=f"Unknown profile(s): {names}",
            suggestion="Run 'slotbox profiles' to see available profiles",
        )


class EmptyPlanError(ProfileError):
    """Raised when a build needs at least one profile but none are selected."""


# Slot Errors


class SlotError(SlotboxError):
    """Base exception for slot-related errors."""


class SlotActiveError(SlotError):
    """Raised when an operation is not allowed on a running slot."""


class NoSlotsError(SlotError):
    """Raised when the project has no slots at all."""


class NoReadySlotError(SlotError):
    """Raised when slots exist but every one of them is busy or unauthenticated."""


class NoAvailableSlotsError(SlotError):
    """Raised when the slot limit for the project is reached."""


class SlotNotFoundError(SlotError):
    """Raised when specified slot does not exist."""
