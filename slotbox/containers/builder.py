"""
Project image build coordination.

Each project has exactly one live image tag, ``slotbox-<identity>:latest``,
labelled with the fingerprint of the plan it was built from. A rebuild
writes a staging tag first and only moves ``:latest`` once the build has
succeeded, so a failed build never replaces a working image.
"""

import os
import time
from collections.abc import Callable
from pathlib import Path
from tempfile import TemporaryDirectory

from slotbox.containers.manager import ContainerManager
from slotbox.context import ProjectContext
from slotbox.profiles.catalog import ProfileCatalog
from slotbox.profiles.generator import DockerfileGenerator
from slotbox.profiles.planner import ExpandedPlan
from slotbox.utils.errors import BuildFailedError, DockerError
from slotbox.utils.locking import project_lock
from slotbox.utils.logging import get_logger

logger = get_logger(__name__)

FINGERPRINT_LABEL = "slotbox.fingerprint"
PROJECT_LABEL = "slotbox.project"
PROFILES_LABEL = "slotbox.profiles"


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1", "true", "yes")


class ImageBuildCoordinator:
    """Decides when to build a project image and builds it."""

    def __init__(
        self, container_manager: ContainerManager, catalog: ProfileCatalog | None = None
    ) -> None:
        self.container_manager = container_manager
        self.catalog = catalog or ProfileCatalog()

    def current_fingerprint(self, ctx: ProjectContext) -> str | None:
        """
        Get the fingerprint the live image was built from.

        Returns:
            Fingerprint label, or None if there is no image (or it has no label)
        """
        labels = self.container_manager.get_image_labels(ctx.image_tag)
        if labels is None:
            return None
        return labels.get(FINGERPRINT_LABEL)

    def _generator(self, ctx: ProjectContext) -> DockerfileGenerator:
        return DockerfileGenerator(
            base_image=ctx.config.docker.base_image, user=ctx.config.docker.user
        )

    def render(self, ctx: ProjectContext, plan: ExpandedPlan) -> str:
        """Render the Dockerfile for a plan."""
        user = ctx.config.docker.user
        profile_steps = []
        for profile_id in plan.profiles:
            profile = self.catalog.get(profile_id)
            profile_steps.append(
                (profile_id, profile.build_steps(user, plan.versions.get(profile_id)))
            )
        return self._generator(ctx).generate(profile_steps, extra_packages=plan.packages)

    def build_args(self, ctx: ProjectContext, force: bool) -> dict[str, str]:
        """Build args passed to docker build."""
        args = {
            "USER_ID": str(os.getuid() or 1000),
            "GROUP_ID": str(os.getgid() or 1000),
            "USERNAME": ctx.config.docker.user,
        }
        args.update(ctx.config.docker.build_args)
        args["REBUILD_TIMESTAMP"] = str(int(time.time())) if force else ""
        return args

    def ensure_image(
        self,
        ctx: ProjectContext,
        plan: ExpandedPlan,
        force: bool = False,
        progress_callback: Callable[[str], None] | None = None,
    ) -> bool:
        """
        Make sure the project image matches the plan, building if needed.

        Args:
            ctx: Project context
            plan: Plan from BuildPlanner.plan()
            force: Rebuild without the layer cache even if the image is current
            progress_callback: Optional callback function(line: str) for build progress

        Returns:
            True if a build occurred, False if the existing image was reused

        Raises:
            BuildFailedError: If the build fails; the previous image is left in place
        """
        force = force or _env_flag("SLOTBOX_FORCE_NO_CACHE")

        with project_lock(ctx.data_root):
            built = self.current_fingerprint(ctx)
            if not force and built == plan.fingerprint:
                logger.debug("Image %s is current (%s)", ctx.image_tag, built)
                return False

            if progress_callback:
                reason = "forced" if force else ("missing" if built is None else "stale")
                progress_callback(f"Building image {ctx.image_tag} ({reason})...\n")

            self._build(ctx, plan, force, progress_callback)
            return True

    def _build(
        self,
        ctx: ProjectContext,
        plan: ExpandedPlan,
        force: bool,
        progress_callback: Callable[[str], None] | None,
    ) -> None:
        staging_tag = f"{ctx.image_repository}:{plan.fingerprint}"
        dockerfile = self.render(ctx, plan)

        with TemporaryDirectory() as tmpdir:
            for filename, content in self._generator(ctx).context_files(dockerfile).items():
                (Path(tmpdir) / filename).write_text(content)

            self.container_manager.build_image(
                context_path=tmpdir,
                tag=staging_tag,
                buildargs=self.build_args(ctx, force),
                labels={
                    FINGERPRINT_LABEL: plan.fingerprint,
                    PROJECT_LABEL: ctx.identity,
                    PROFILES_LABEL: ",".join(plan.profiles),
                },
                nocache=force,
                progress_callback=progress_callback,
            )

        if not self.container_manager.image_exists(staging_tag):
            raise BuildFailedError(
                message=f"Image build did not produce tag {staging_tag}",
                suggestion="Check the build output above, then run: slotbox rebuild",
            )

        try:
            self.container_manager.tag_image(staging_tag, ctx.image_tag)
            logger.debug("Tagged %s from %s", ctx.image_tag, staging_tag)
        finally:
            self._drop_staging_tag(staging_tag)

        try:
            result = self.container_manager.prune_dangling_images(
                filters={"label": f"{PROJECT_LABEL}={ctx.identity}"}
            )
        except DockerError as e:
            logger.warning("Could not prune old images: %s", e.message)
            return

        deleted = result.get("ImagesDeleted") or []
        if progress_callback and deleted:
            space_mb = result.get("SpaceReclaimed", 0) / (1024 * 1024)
            progress_callback(
                f"✓ Removed {len(deleted)} old image(s), reclaimed {space_mb:.1f} MB\n"
            )

    def _drop_staging_tag(self, staging_tag: str) -> None:
        """Remove the staging tag; the project keeps only :latest."""
        try:
            self.container_manager.remove_image(staging_tag)
        except DockerError as e:
            logger.warning("Could not remove staging tag %s: %s", staging_tag, e.message)

    def commit(self, ctx: ProjectContext, container_name: str) -> None:
        """
        Commit a container back into the project image.

        The committed image keeps the labels of the image it ran from, so the
        fingerprint still matches and the next run does not rebuild over the
        committed changes. The admin shell arguments are cleared from the
        committed CMD so later runs do not inherit them.

        Args:
            ctx: Project context
            container_name: Admin session container
        """
        with project_lock(ctx.data_root):
            self.container_manager.commit_container(
                container_name, ctx.image_tag, changes=["CMD []"]
            )
        logger.debug("Committed %s into %s", container_name, ctx.image_tag)
