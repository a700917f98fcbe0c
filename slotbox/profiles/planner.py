"""
Build planning.

Turns a project's persisted profile selection into an ExpandedPlan: the
ordered, de-duplicated closure of the selected profiles plus everything else
that determines the image contents. The plan's fingerprint is stored as an
image label and compared on every run to decide whether to rebuild.
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any

from slotbox.context import ProjectContext
from slotbox.profiles.catalog import ProfileCatalog
from slotbox.profiles.generator import TEMPLATE_REVISION
from slotbox.profiles.store import PACKAGES_SECTION, PROFILES_SECTION, ProfileStore
from slotbox.profiles.versions import VersionResolver
from slotbox.utils.errors import EmptyPlanError
from slotbox.utils.logging import get_logger

logger = get_logger(__name__)

FINGERPRINT_LENGTH = 16


@dataclass(frozen=True)
class ExpandedPlan:
    """Everything that goes into a project image."""

    profiles: list[str]
    packages: list[str]
    params: dict[str, Any] = field(default_factory=dict)
    versions: dict[str, str] = field(default_factory=dict)
    fingerprint: str = ""


def compute_fingerprint(
    profiles: list[str],
    packages: list[str],
    params: dict[str, Any],
    versions: dict[str, str],
) -> str:
    """
    Hash the inputs of a plan.

    Canonical JSON keeps the hash independent of dict ordering. Profile and
    package order is kept because it is the build order.
    """
    payload = json.dumps(
        {"profiles": profiles, "packages": packages, "params": params, "versions": versions},
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


class BuildPlanner:
    """Expands selections into build plans and checks image staleness."""

    def __init__(
        self,
        catalog: ProfileCatalog | None = None,
        store: ProfileStore | None = None,
        resolver: VersionResolver | None = None,
    ) -> None:
        self.catalog = catalog or ProfileCatalog()
        self.store = store or ProfileStore()
        self.resolver = resolver or VersionResolver()

    def expand_all(self, profile_ids: list[str]) -> list[str]:
        """
        Expand profiles and de-duplicate, keeping first-seen order.

        Prerequisites always come before the profiles that need them, and
        expanding an already expanded list returns it unchanged.

        Example:
            >>> BuildPlanner().expand_all(["python", "c"])
            ['core', 'python', 'build-tools', 'c']
        """
        expanded: list[str] = []
        for profile_id in profile_ids:
            for item in self.catalog.expand(profile_id):
                if item not in expanded:
                    expanded.append(item)
        return expanded

    def build_params(self, ctx: ProjectContext) -> dict[str, Any]:
        """Build parameters that change the image without changing the selection."""
        docker = ctx.config.docker
        return {
            "base_image": docker.base_image,
            "user": docker.user,
            "build_args": dict(sorted(docker.build_args.items())),
            "template": TEMPLATE_REVISION,
        }

    def plan(self, ctx: ProjectContext, require_profiles: bool = False) -> ExpandedPlan:
        """
        Build the plan for a project.

        Args:
            ctx: Project context
            require_profiles: Raise EmptyPlanError when nothing is selected

        Returns:
            ExpandedPlan with its fingerprint

        Raises:
            UnknownProfileError: If the stored selection names unknown profiles
            EmptyPlanError: If require_profiles is set and no profile is selected
        """
        selected = self.store.read(ctx, PROFILES_SECTION)
        packages = self.store.read(ctx, PACKAGES_SECTION)
        self.catalog.validate(selected)

        if require_profiles and not selected:
            raise EmptyPlanError(
                message="No profiles selected for this project",
                suggestion="Add one first, e.g.: slotbox add core",
            )

        profiles = self.expand_all(selected)

        versions: dict[str, str] = {}
        for profile_id in profiles:
            profile = self.catalog.get(profile_id)
            if profile.version is not None:
                versions[profile_id] = self.resolver.resolve(
                    profile.version, ctx.project_dir
                ).version

        params = self.build_params(ctx)
        fingerprint = compute_fingerprint(profiles, packages, params, versions)
        logger.debug("Plan %s: profiles=%s packages=%s", fingerprint, profiles, packages)

        return ExpandedPlan(
            profiles=profiles,
            packages=packages,
            params=params,
            versions=versions,
            fingerprint=fingerprint,
        )

    def is_stale(
        self, ctx: ProjectContext, built_fingerprint: str | None, force: bool = False
    ) -> bool:
        """
        Check whether the built image no longer matches the plan.

        Args:
            ctx: Project context
            built_fingerprint: Fingerprint label of the current image, None if no image
            force: Caller-requested rebuild

        Returns:
            True if the image must be (re)built
        """
        if force or built_fingerprint is None:
            return True
        return built_fingerprint != self.plan(ctx).fingerprint
