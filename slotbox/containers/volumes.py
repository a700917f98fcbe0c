"""
Volume mount and environment preparation for slot containers.

Every run mode gets the same mounts and environment: the project
directory as /workspace, the project's data root, the slot's own
authentication and tool state, configured credential directories, and the
host tmux socket so tmux works inside the container.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from slotbox.containers.slot import Slot
from slotbox.context import ProjectContext
from slotbox.utils.logging import get_logger

logger = get_logger(__name__)

WORKSPACE = "/workspace"
CAPABILITIES = ["NET_ADMIN", "NET_RAW"]


@dataclass
class RuntimeSpec:
    """
    Mounts, environment and capabilities for a container run.

    ``mounts`` uses the Docker SDK volume format:
    {"/host/path": {"bind": "/container/path", "mode": "rw"}}
    """

    mounts: dict[str, dict[str, str]] = field(default_factory=dict)
    environment: dict[str, str] = field(default_factory=dict)
    capabilities: list[str] = field(default_factory=lambda: list(CAPABILITIES))
    workdir: str = WORKSPACE


class VolumeManager:
    """Builds the RuntimeSpec shared by all run modes."""

    def __init__(self, environ: dict[str, str] | None = None) -> None:
        """
        Initialize volume manager.

        Args:
            environ: Host environment to read pass-through values from
                (defaults to os.environ)
        """
        self.environ = dict(os.environ) if environ is None else environ

    def prepare(self, ctx: ProjectContext, slot: Slot | None = None) -> RuntimeSpec:
        """
        Prepare mounts and environment for a container.

        Args:
            ctx: Project context
            slot: Slot to mount state from; None for transient and admin shells

        Returns:
            RuntimeSpec

        Example:
            >>> spec = VolumeManager().prepare(ctx, slot)
            >>> spec.mounts[str(ctx.project_dir)]
            {'bind': '/workspace', 'mode': 'rw'}
        """
        home = f"/home/{ctx.config.docker.user}"
        mounts: dict[str, dict[str, str]] = {
            str(ctx.project_dir): {"bind": WORKSPACE, "mode": "rw"},
            str(ctx.data_root): {"bind": f"{home}/.slotbox", "mode": "rw"},
        }

        if slot is not None:
            mounts.update(self._slot_mounts(slot, home))

        for mount in ctx.config.mounts:
            source = Path(mount.source).expanduser()
            if not source.exists():
                logger.debug("Skipping mount %s: source does not exist", mount.source)
                continue
            target = mount.target
            if target.startswith("~/"):
                target = f"{home}/{target[2:]}"
            mounts[str(source.resolve())] = {"bind": target, "mode": mount.mode}

        env_file = ctx.project_dir / ".env"
        if env_file.is_file():
            mounts[str(env_file)] = {"bind": f"{WORKSPACE}/.env", "mode": "ro"}

        tmux_dir = self._tmux_socket_dir()
        if tmux_dir is not None:
            mounts[str(tmux_dir)] = {"bind": str(tmux_dir), "mode": "rw"}

        return RuntimeSpec(mounts=mounts, environment=self._environment(ctx, slot))

    def _slot_mounts(self, slot: Slot, home: str) -> dict[str, dict[str, str]]:
        mounts: dict[str, dict[str, str]] = {}

        for name in (".claude", ".config", ".cache"):
            path = slot.slot_dir / name
            path.mkdir(parents=True, exist_ok=True)
            mounts[str(path)] = {"bind": f"{home}/{name}", "mode": "rw"}

        # Docker would create a missing file mount as a directory
        if not slot.history_path.exists():
            slot.history_path.touch()
        mounts[str(slot.history_path)] = {"bind": f"{home}/.bash_history", "mode": "rw"}

        claude_json = slot.slot_dir / ".claude.json"
        if claude_json.is_file():
            mounts[str(claude_json)] = {"bind": f"{home}/.claude.json", "mode": "rw"}

        return mounts

    def _environment(self, ctx: ProjectContext, slot: Slot | None) -> dict[str, str]:
        env = {
            "NODE_ENV": self.environ.get("NODE_ENV", "production"),
            "ANTHROPIC_API_KEY": self.environ.get("ANTHROPIC_API_KEY", ""),
            "SLOTBOX_PROJECT_NAME": ctx.project_name,
            "SLOTBOX_SLOT_NAME": slot.slot_dir.name if slot is not None else "",
            "TERM": self.environ.get("TERM", "xterm-256color"),
            "VERBOSE": "true" if ctx.verbose else "false",
        }
        if self.environ.get("TMUX"):
            env["TMUX"] = self.environ["TMUX"]
        return env

    def _tmux_socket_dir(self) -> Path | None:
        """
        Find the host tmux socket directory.

        Checks $TMUX first, then the usual socket locations for this user.
        If none has a socket, /tmp/tmux-<uid> is created so a tmux server
        started later is reachable from the container.

        Returns:
            Directory to mount, or None if it can't be found or created
        """
        tmux = self.environ.get("TMUX")
        if tmux:
            # Format: /tmp/tmux-1000/default,23456,0
            socket_dir = Path(tmux.split(",", 1)[0]).parent
            if socket_dir.is_dir():
                return socket_dir

        uid = os.getuid()
        default_dir = Path(f"/tmp/tmux-{uid}")
        for candidate in (default_dir, Path(f"/var/run/tmux-{uid}"), Path.home() / ".tmux"):
            try:
                if candidate.is_dir() and any(p.is_socket() for p in candidate.iterdir()):
                    return candidate
            except OSError:
                continue

        try:
            default_dir.mkdir(mode=0o700, exist_ok=True)
        except OSError as e:
            logger.debug("No tmux socket directory available: %s", e)
            return None
        return default_dir
