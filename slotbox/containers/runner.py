"""
Container run modes.

Runs go through the docker CLI via subprocess because interactive sessions
need the caller's real TTY, which the Docker SDK can't hand over.
"""

import subprocess
import sys
import time
from dataclasses import dataclass, field
from enum import Enum

from slotbox.config.models import DockerConfig
from slotbox.containers.manager import ContainerManager
from slotbox.containers.volumes import RuntimeSpec
from slotbox.utils.errors import AttachTimeoutError, ContainerStartError, RuntimeUnavailableError
from slotbox.utils.logging import get_logger

logger = get_logger(__name__)


class RunMode(str, Enum):
    """How a container is started and connected to the terminal."""

    INTERACTIVE = "interactive"
    DETACHED = "detached"
    PIPE = "pipe"
    ATTACHED = "attached"


@dataclass
class RunInvocation:
    """A single container run."""

    image: str
    mode: RunMode
    runtime: RuntimeSpec
    args: list[str] = field(default_factory=list)
    name: str | None = None
    # Admin containers outlive the run so they can be committed
    persistent: bool = False


def _has_tty() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()


class ContainerRunner:
    """Starts containers in one of the four run modes."""

    def __init__(self, container_manager: ContainerManager, docker_config: DockerConfig) -> None:
        """
        Initialize runner.

        Args:
            container_manager: Used to probe and clean up attached containers
            docker_config: Attach timeout and poll interval
        """
        self.container_manager = container_manager
        self.attach_timeout = docker_config.attach_timeout
        self.poll_interval = docker_config.poll_interval

    def build_command(self, invocation: RunInvocation) -> list[str]:
        """
        Build the docker run argv for an invocation.

        Attached runs are started with the detached command.

        Returns:
            Command as list of strings (for subprocess.run)
        """
        cmd = ["docker", "run"]
        mode = invocation.mode

        if mode == RunMode.INTERACTIVE:
            if _has_tty():
                cmd.append("-it")
            if not invocation.persistent:
                cmd.append("--rm")
            if invocation.name:
                cmd.extend(["--name", invocation.name])
            cmd.append("--init")
        elif mode in (RunMode.DETACHED, RunMode.ATTACHED):
            cmd.append("-d")
            if mode == RunMode.ATTACHED:
                # docker attach needs stdin and a TTY allocated at start
                cmd.extend(["-i", "-t"])
            if not invocation.persistent:
                cmd.append("--rm")
            if invocation.name:
                cmd.extend(["--name", invocation.name])
        elif mode == RunMode.PIPE:
            cmd.extend(["--rm", "--init", "-i"])

        runtime = invocation.runtime
        cmd.extend(["-w", runtime.workdir])
        for host_path, mount in runtime.mounts.items():
            cmd.extend(["-v", f"{host_path}:{mount['bind']}:{mount['mode']}"])
        for key, value in runtime.environment.items():
            cmd.extend(["-e", f"{key}={value}"])
        for capability in runtime.capabilities:
            cmd.extend(["--cap-add", capability])

        cmd.append(invocation.image)
        cmd.extend(invocation.args)
        return cmd

    def run(self, invocation: RunInvocation) -> int:
        """
        Run a container.

        Args:
            invocation: What to run and how

        Returns:
            Container exit code; 0 for detached runs once started

        Raises:
            ContainerStartError: If a detached container fails to start
            AttachTimeoutError: If an attached container never becomes ready
            RuntimeUnavailableError: If the docker CLI is missing
        """
        cmd = self.build_command(invocation)
        logger.debug("Docker run command: %s", " ".join(cmd))

        if invocation.mode == RunMode.ATTACHED:
            return self._run_attached(invocation, cmd)
        if invocation.mode == RunMode.DETACHED:
            self._start_detached(cmd, invocation.name)
            return 0
        return self._call(cmd)

    def _call(self, cmd: list[str]) -> int:
        try:
            result = subprocess.run(cmd, check=False)
        except FileNotFoundError as e:
            raise RuntimeUnavailableError(
                message="docker command not found",
                suggestion="Install Docker and make sure 'docker' is on your PATH",
            ) from e
        return result.returncode

    def _start_detached(self, cmd: list[str], name: str | None) -> None:
        try:
            result = subprocess.run(cmd, check=False, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise RuntimeUnavailableError(
                message="docker command not found",
                suggestion="Install Docker and make sure 'docker' is on your PATH",
            ) from e
        if result.returncode != 0:
            raise ContainerStartError(
                message=f"Failed to start container {name or ''}: {result.stderr.strip()}",
                suggestion=f"If a stale container holds the name, remove it: docker rm -f {name}"
                if name
                else "Check that the image exists: slotbox rebuild",
            )

    def _run_attached(self, invocation: RunInvocation, cmd: list[str]) -> int:
        name = invocation.name
        if not name:
            raise ValueError("Attached runs need a container name")

        self._start_detached(cmd, name)
        self.wait_until_ready(name)
        return self._call(["docker", "attach", name])

    def wait_until_ready(self, name: str) -> None:
        """
        Poll a container until it accepts commands.

        Args:
            name: Container name

        Raises:
            AttachTimeoutError: If it doesn't respond within attach_timeout;
                the container is removed first
        """
        deadline = time.monotonic() + self.attach_timeout
        while not self.container_manager.probe(name):
            if time.monotonic() >= deadline:
                self.container_manager.remove_container(name, force=True)
                raise AttachTimeoutError(
                    message=f"Container {name} did not become ready within "
                    f"{self.attach_timeout:g}s",
                    suggestion="Check 'docker logs' for the container, or raise "
                    "docker.attach_timeout in ~/.slotbox/config.yml",
                )
            time.sleep(self.poll_interval)
