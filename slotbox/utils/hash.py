"""
Project identity utilities.

Derive unique, deterministic identities for project directories. The identity
names the project's image and keys its data root under the slotbox home.
"""

import hashlib
import os
import re
from pathlib import Path

from slotbox.utils.errors import InvalidPathError

IDENTITY_HASH_LENGTH = 12
MAX_NAME_LENGTH = 48


def slotbox_home() -> Path:
    """
    Get the slotbox home directory.

    Returns:
        $SLOTBOX_HOME when set, otherwise ~/.slotbox
    """
    override = os.environ.get("SLOTBOX_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".slotbox"


def canonical_path(project_dir: str | Path) -> Path:
    """
    Canonicalize a project directory path.

    Args:
        project_dir: Path to project directory

    Returns:
        Absolute path with symlinks and relative components resolved

    Raises:
        InvalidPathError: If the path is empty, malformed, or not a directory
    """
    raw = str(project_dir)
    if not raw.strip():
        raise InvalidPathError(
            message="Project path is empty",
            suggestion="Run slotbox from inside your project directory",
        )
    if "\x00" in raw:
        raise InvalidPathError(message=f"Project path contains a NUL byte: {raw!r}")

    try:
        resolved = Path(raw).expanduser().resolve(strict=False)
    except (OSError, RuntimeError) as e:
        raise InvalidPathError(
            message=f"Cannot resolve project path {raw}: {e}",
            suggestion="Check for symlink loops and directory permissions",
        ) from e

    if resolved.exists() and not resolved.is_dir():
        raise InvalidPathError(
            message=f"Project path is not a directory: {resolved}",
            suggestion="Point slotbox at a project directory, not a file",
        )

    return resolved


def get_project_name(project_dir: str | Path) -> str:
    """
    Get the project name from directory path.

    Args:
        project_dir: Path to project directory

    Returns:
        Directory name (last component of path)

    Example:
        >>> get_project_name("/home/user/my-project")
        'my-project'
    """
    return canonical_path(project_dir).name


def _sanitize(name: str) -> str:
    """Lowercase a name and collapse characters Docker rejects into single dashes."""
    cleaned = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return cleaned[:MAX_NAME_LENGTH].rstrip("-") or "project"


def identity_for(project_dir: str | Path) -> str:
    """
    Derive the identity of a project directory.

    Combines a sanitized project name with a hash of the canonical path, so
    two directories with the same basename never collide and the same
    directory always maps to the same identity.

    Args:
        project_dir: Path to project directory

    Returns:
        Identity string in <name>-<hash> format, safe for image names

    Raises:
        InvalidPathError: If the path cannot be canonicalized

    Example:
        >>> identity_for("/home/user/My Project")
        'my-project-3f2a9c1b0d4e'
    """
    abs_path = canonical_path(project_dir)

    hash_obj = hashlib.sha256(str(abs_path).encode("utf-8"))
    digest = hash_obj.hexdigest()[:IDENTITY_HASH_LENGTH]
    return f"{_sanitize(abs_path.name)}-{digest}"


def data_root_for(identity: str) -> Path:
    """
    Get the data root directory for a project identity.

    The directory is created on first use. Calling this repeatedly is safe.

    Args:
        identity: Project identity from identity_for()

    Returns:
        Path to <slotbox home>/projects/<identity>
    """
    root = slotbox_home() / "projects" / identity
    root.mkdir(parents=True, exist_ok=True)
    return root
