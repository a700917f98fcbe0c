"""
Docker runtime boundary.

Builds, inspects, tags, commits and removes images and queries containers
using the Python Docker SDK. Interactive runs that need the caller's TTY go
through slotbox.containers.runner instead.
"""

from collections.abc import Callable
from typing import Any

import docker
from docker import DockerClient
from docker.errors import APIError, DockerException, ImageNotFound, NotFound
from docker.models.containers import Container

from slotbox.utils.errors import BuildFailedError, DockerError, RuntimeUnavailableError
from slotbox.utils.logging import get_logger

logger = get_logger(__name__)


class ContainerManager:
    """Manages Docker images and containers for slotbox."""

    def __init__(self) -> None:
        """
        Initialize container manager.

        Raises:
            RuntimeUnavailableError: If Docker is not running or accessible
        """
        try:
            self.client: DockerClient = docker.from_env()
            # Verify connection
            self.client.ping()
        except DockerException as e:
            raise RuntimeUnavailableError(
                message="Docker is not running or not accessible",
                suggestion="Start Docker and ensure it's accessible. Run: docker ps",
            ) from e

    def build_image(
        self,
        context_path: str,
        tag: str,
        buildargs: dict[str, str] | None = None,
        labels: dict[str, str] | None = None,
        nocache: bool = False,
        progress_callback: Callable[[str], None] | None = None,
    ) -> None:
        """
        Build Docker image with optional progress streaming.

        Args:
            context_path: Path to directory containing the Dockerfile
            tag: Image tag name
            buildargs: Build-time variables
            labels: Labels to set on the image
            nocache: If True, don't use the layer cache
            progress_callback: Optional callback function(line: str) for build progress

        Raises:
            BuildFailedError: If image build fails, carrying Docker's own message
        """
        try:
            build_logs = self.client.api.build(
                path=context_path,
                tag=tag,
                buildargs=buildargs or {},
                labels=labels or {},
                rm=True,  # Remove intermediate containers
                nocache=nocache,
                decode=True,  # Decode JSON stream
            )

            for chunk in build_logs:
                error_msg = chunk.get("error") or chunk.get("errorDetail", {}).get("message")
                if error_msg:
                    if progress_callback:
                        progress_callback(f"ERROR: {error_msg}")
                    raise BuildFailedError(
                        message=f"Failed to build image '{tag}': {error_msg}",
                        suggestion="Fix the failing step, then run: slotbox rebuild",
                    )

                if not progress_callback:
                    continue
                if "stream" in chunk:
                    progress_callback(chunk["stream"])
                elif "status" in chunk:
                    # Status updates (pulling images, etc)
                    status = chunk.get("status", "")
                    progress = chunk.get("progress", "")
                    if progress:
                        progress_callback(f"{status} {progress}\n")
                    else:
                        progress_callback(f"{status}\n")

        except BuildFailedError:
            raise
        except (APIError, DockerException) as e:
            raise BuildFailedError(
                message=f"Failed to build image '{tag}': {e}",
                suggestion="Check that the base image is reachable, then run: slotbox rebuild",
            ) from e

    def image_exists(self, tag: str) -> bool:
        """
        Check if a Docker image exists.

        Args:
            tag: Image tag name (e.g., "slotbox-myproject-0123abcd4567:latest")

        Returns:
            True if image exists, False otherwise
        """
        return self.inspect_image(tag) is not None

    def inspect_image(self, tag: str) -> dict[str, Any] | None:
        """
        Get metadata for an image.

        Args:
            tag: Image tag name

        Returns:
            Dict with id, labels, created and size, or None if the image doesn't exist
        """
        try:
            image = self.client.images.get(tag)
        except ImageNotFound:
            return None
        except (APIError, DockerException) as e:
            logger.debug("Failed to inspect image %s: %s", tag, e)
            return None

        attrs = image.attrs or {}
        return {
            "id": image.short_id,
            "labels": image.labels or {},
            "created": attrs.get("Created", ""),
            "size": attrs.get("Size", 0),
        }

    def get_image_labels(self, tag: str) -> dict[str, str] | None:
        """
        Get the labels of an image.

        Returns:
            Label dict, or None if the image doesn't exist
        """
        info = self.inspect_image(tag)
        return info["labels"] if info is not None else None

    def tag_image(self, source_tag: str, target_tag: str) -> None:
        """
        Tag an existing image with a new tag.

        Args:
            source_tag: Existing image tag
            target_tag: New tag to apply

        Raises:
            DockerError: If tagging fails
        """
        try:
            image = self.client.images.get(source_tag)
            if ":" in target_tag:
                repository, tag = target_tag.rsplit(":", 1)
            else:
                repository = target_tag
                tag = "latest"
            image.tag(repository, tag)
        except ImageNotFound as e:
            raise DockerError(
                message=f"Source image not found: {source_tag}",
                suggestion="Build the image first: slotbox rebuild",
            ) from e
        except (APIError, DockerException) as e:
            raise DockerError(
                message=f"Failed to tag image '{source_tag}' as '{target_tag}': {e}",
                suggestion="Check if source image exists",
            ) from e

    def remove_image(self, tag: str, force: bool = False) -> bool:
        """
        Remove a Docker image tag.

        Args:
            tag: Image tag name
            force: If True, force remove even if image is in use

        Returns:
            True if image was removed, False if image didn't exist

        Raises:
            DockerError: If image removal fails
        """
        try:
            self.client.images.remove(tag, force=force)
            return True
        except ImageNotFound:
            return False
        except (APIError, DockerException) as e:
            raise DockerError(
                message=f"Failed to remove image '{tag}': {e}",
                suggestion=f"Check if image is in use: docker ps -a --filter ancestor={tag}",
            ) from e

    def prune_dangling_images(self, filters: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Remove dangling images (untagged images with <none> tag).

        Args:
            filters: Additional filter criteria (e.g., {"label": "slotbox.project=..."})

        Returns:
            Dict with ImagesDeleted and SpaceReclaimed

        Raises:
            DockerError: If pruning fails
        """
        try:
            prune_filters: dict[str, Any] = {"dangling": True}
            if filters:
                prune_filters.update(filters)

            result: dict[str, Any] = self.client.images.prune(filters=prune_filters)
            return result
        except (APIError, DockerException) as e:
            raise DockerError(
                message=f"Failed to prune dangling images: {e}",
                suggestion="Try: docker image prune",
            ) from e

    def commit_container(
        self, name: str, target_tag: str, changes: list[str] | None = None
    ) -> None:
        """
        Commit a container's filesystem into an image tag.

        Args:
            name: Container name
            target_tag: Image tag to write (repository:tag)
            changes: Dockerfile instructions applied to the committed image

        Raises:
            DockerError: If the container is missing or the commit fails
        """
        repository, tag = target_tag.rsplit(":", 1) if ":" in target_tag else (target_tag, "latest")
        try:
            container = self.client.containers.get(name)
            container.commit(repository=repository, tag=tag, changes=changes)
        except NotFound as e:
            raise DockerError(
                message=f"Container not found: {name}",
                suggestion="Check container name with: docker ps -a",
            ) from e
        except (APIError, DockerException) as e:
            raise DockerError(
                message=f"Failed to commit container '{name}' to '{target_tag}': {e}",
                suggestion=f"Try: docker commit {name} {target_tag}",
            ) from e

    def get_container(self, name: str) -> Container | None:
        """
        Get container by name.

        Args:
            name: Container name

        Returns:
            Container instance, or None if not found
        """
        try:
            return self.client.containers.get(name)
        except NotFound:
            return None
        except (APIError, DockerException):
            return None

    def is_container_running(self, name: str) -> bool:
        """
        Check if a container is running.

        Args:
            name: Container name

        Returns:
            True if container is running, False otherwise
        """
        container = self.get_container(name)
        if container is None:
            return False
        return str(container.status) == "running"

    def probe(self, name: str) -> bool:
        """
        Check that a container accepts commands.

        Args:
            name: Container name

        Returns:
            True if ``true`` executes successfully inside the container
        """
        container = self.get_container(name)
        if container is None:
            return False
        try:
            exit_code, _ = container.exec_run(["true"])
        except (APIError, DockerException):
            return False
        return exit_code == 0

    def remove_container(self, name: str, force: bool = False) -> None:
        """
        Remove a container.

        Args:
            name: Container name
            force: If True, force remove even if running

        Raises:
            DockerError: If removal fails
        """
        try:
            container = self.client.containers.get(name)
            container.remove(force=force)
        except NotFound:
            # Already removed, no error
            pass
        except (APIError, DockerException) as e:
            raise DockerError(
                message=f"Failed to remove container '{name}': {e}",
                suggestion=f"Try: docker rm -f {name}",
            ) from e
