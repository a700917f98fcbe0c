"""
Session orchestration layer.

Coordinates the planner, image builder, slot manager and runner into the
operations the CLI exposes. This keeps CLI commands thin and focused on user
interaction, while the lower-level services stay simple and reusable.
"""

import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from slotbox.containers.builder import ImageBuildCoordinator
from slotbox.containers.manager import ContainerManager
from slotbox.containers.runner import ContainerRunner, RunInvocation, RunMode
from slotbox.containers.slot import SlotInfo, SlotManager, SlotState
from slotbox.containers.volumes import VolumeManager
from slotbox.context import ProjectContext
from slotbox.profiles.planner import BuildPlanner
from slotbox.utils.errors import SlotActiveError
from slotbox.utils.logging import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[str], None]


class SessionOrchestrator:
    """
    Orchestrates image preparation and container sessions.

    Example:
        >>> orchestrator = SessionOrchestrator(ContainerManager())
        >>> ctx = ProjectContext.from_path(Path.cwd())
        >>> exit_code = orchestrator.launch_ready(ctx, RunMode.INTERACTIVE, [])
    """

    def __init__(
        self,
        container_manager: ContainerManager,
        planner: BuildPlanner | None = None,
        volumes: VolumeManager | None = None,
    ) -> None:
        self.container_manager = container_manager
        self.planner = planner or BuildPlanner()
        self.builder = ImageBuildCoordinator(container_manager, self.planner.catalog)
        self.slots = SlotManager(container_manager)
        self.volumes = volumes or VolumeManager()

    def _runner(self, ctx: ProjectContext) -> ContainerRunner:
        return ContainerRunner(self.container_manager, ctx.config.docker)

    def prepare_image(
        self,
        ctx: ProjectContext,
        force: bool = False,
        progress_callback: ProgressCallback | None = None,
    ) -> bool:
        """
        Plan the project and build its image if it is missing or stale.

        Returns:
            True if a build occurred
        """
        plan = self.planner.plan(ctx)
        return self.builder.ensure_image(
            ctx, plan, force=force, progress_callback=progress_callback
        )

    def rebuild(
        self, ctx: ProjectContext, progress_callback: ProgressCallback | None = None
    ) -> None:
        """Force a rebuild without the layer cache."""
        self.prepare_image(ctx, force=True, progress_callback=progress_callback)

    def launch_slot(
        self,
        ctx: ProjectContext,
        ordinal: int,
        mode: RunMode = RunMode.INTERACTIVE,
        args: list[str] | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> int:
        """
        Run a container bound to a specific slot.

        Args:
            ctx: Project context
            ordinal: Slot number
            mode: Run mode
            args: Arguments passed through to the assistant
            progress_callback: Optional callback function(line: str) for build progress

        Returns:
            Container exit code

        Raises:
            SlotNotFoundError: If the slot doesn't exist
            SlotActiveError: If the slot already has a running container
        """
        slot = self.slots.get_slot(ctx, ordinal)
        if self.slots.state(ctx, ordinal) == SlotState.ACTIVE:
            raise SlotActiveError(
                message=f"Slot {ordinal} is already running",
                suggestion="Use another slot ('slotbox run' picks one) or create one: "
                "slotbox create",
            )

        self.prepare_image(ctx, progress_callback=progress_callback)
        self.slots.mark_used(ctx, ordinal)

        invocation = RunInvocation(
            image=ctx.image_tag,
            mode=mode,
            runtime=self.volumes.prepare(ctx, slot),
            args=list(args or []),
            name=ctx.slot_container_name(ordinal),
        )
        logger.debug("Launching slot %d in %s mode", ordinal, mode.value)
        return self._runner(ctx).run(invocation)

    def launch_ready(
        self,
        ctx: ProjectContext,
        mode: RunMode = RunMode.INTERACTIVE,
        args: list[str] | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> int:
        """
        Run a container in the first READY slot.

        Raises:
            NoSlotsError: If the project has no slots
            NoReadySlotError: If no slot is READY
        """
        slot = self.slots.pick_ready(ctx)
        return self.launch_slot(ctx, slot.ordinal, mode, args, progress_callback)

    def create_slot(
        self,
        ctx: ProjectContext,
        authenticate: bool = True,
        progress_callback: ProgressCallback | None = None,
    ) -> tuple[SlotInfo, int | None]:
        """
        Allocate a slot and optionally run its first session to log in.

        Returns:
            The new slot, and the exit code of the authentication session
            (None when authenticate is False)
        """
        info = self.slots.create(ctx)
        if not authenticate:
            return info, None
        exit_code = self.launch_slot(
            ctx, info.ordinal, RunMode.INTERACTIVE, [], progress_callback
        )
        return info, exit_code

    def transient_shell(
        self,
        ctx: ProjectContext,
        args: list[str] | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> int:
        """Run a throwaway bash shell; nothing is kept after exit."""
        self.prepare_image(ctx, progress_callback=progress_callback)
        invocation = RunInvocation(
            image=ctx.image_tag,
            mode=RunMode.INTERACTIVE,
            runtime=self.volumes.prepare(ctx),
            args=["shell", *(args or [])],
        )
        return self._runner(ctx).run(invocation)

    def admin_container_name(self, ctx: ProjectContext) -> str:
        return f"slotbox-{ctx.identity}-admin-{os.getpid()}"

    @contextmanager
    def admin_session(self, ctx: ProjectContext, container_name: str) -> Iterator[str]:
        """
        Commit and remove an admin container when the block exits.

        Runs on normal exit, errors and KeyboardInterrupt alike. If the
        container was never created there is nothing to commit.

        Args:
            ctx: Project context
            container_name: Admin container name

        Yields:
            The container name
        """
        try:
            yield container_name
        finally:
            if self.container_manager.get_container(container_name) is not None:
                try:
                    self.builder.commit(ctx, container_name)
                finally:
                    self.container_manager.remove_container(container_name, force=True)

    def admin_shell(
        self, ctx: ProjectContext, progress_callback: ProgressCallback | None = None
    ) -> int:
        """
        Run a persistent root-capable shell and commit its changes to the image.

        Sudo is enabled and the firewall disabled so system packages can be
        installed. The container is committed into the project image and
        removed when the shell exits.

        Returns:
            Shell exit code
        """
        self.prepare_image(ctx, progress_callback=progress_callback)
        name = self.admin_container_name(ctx)
        invocation = RunInvocation(
            image=ctx.image_tag,
            mode=RunMode.INTERACTIVE,
            runtime=self.volumes.prepare(ctx),
            args=["--enable-sudo", "--disable-firewall", "shell"],
            name=name,
            persistent=True,
        )
        with self.admin_session(ctx, name):
            return self._runner(ctx).run(invocation)
