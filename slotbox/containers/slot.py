"""
Slot management for parallel, independently authenticated containers.

Each slot is a directory under <data root>/slots/slot-<n>/ holding the
assistant's authentication state, shell history, tool config, a cache and a
firewall allowlist. Whether a slot is ACTIVE is never stored: it is checked
against Docker on every call.

Ordinal policy: ``create`` takes the smallest ordinal without a directory,
so revoking slot 2 of 1..3 makes the next ``create`` return 2. Slots are
only renumbered by an explicit ``compact``.
"""

import shutil
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from slotbox.containers.manager import ContainerManager
from slotbox.context import ProjectContext
from slotbox.utils.errors import (
    NoAvailableSlotsError,
    NoReadySlotError,
    NoSlotsError,
    RuntimeUnavailableError,
    SlotActiveError,
    SlotNotFoundError,
)
from slotbox.utils.locking import project_lock
from slotbox.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ALLOWLIST = [
    "# Domains this slot may reach when the firewall is enabled.",
    "# One per line; lines starting with # are ignored.",
    "api.anthropic.com",
    "console.anthropic.com",
    "statsig.anthropic.com",
    "sentry.io",
]

SLOT_SUBDIRS = (".claude", ".config", ".cache")


class SlotState(str, Enum):
    """Lifecycle state of a slot."""

    NONE = "none"
    CREATED = "created"
    READY = "ready"
    ACTIVE = "active"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class SlotInfo:
    """Point-in-time view of a slot."""

    ordinal: int
    state: SlotState
    path: Path
    container_name: str
    created_at: str | None = None
    last_used: str | None = None


class Slot:
    """On-disk state of a single slot."""

    def __init__(self, ctx: ProjectContext, ordinal: int) -> None:
        """
        Initialize slot.

        Args:
            ctx: Project context
            ordinal: Slot number (1 or greater)
        """
        self.ordinal = ordinal
        self.slot_dir = ctx.slots_dir / f"slot-{ordinal}"
        self.metadata_path = self.slot_dir / "metadata.yml"
        self.allowlist_path = self.slot_dir / "allowlist"
        self.history_path = self.slot_dir / ".bash_history"

    def exists(self) -> bool:
        return self.slot_dir.is_dir()

    def initialize(self) -> None:
        """Create the slot directory structure and metadata."""
        self.slot_dir.mkdir(parents=True, exist_ok=False)
        for subdir in SLOT_SUBDIRS:
            (self.slot_dir / subdir).mkdir()
        self.history_path.touch()
        self.allowlist_path.write_text("\n".join(DEFAULT_ALLOWLIST) + "\n")
        self.save({"created_at": datetime.now(UTC).isoformat(), "last_used": None})

    def save(self, data: dict[str, Any]) -> None:
        self.metadata_path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))

    def load(self) -> dict[str, Any]:
        """
        Load slot metadata.

        Returns:
            Metadata dictionary; empty if missing or corrupted
        """
        if not self.metadata_path.exists():
            return {}

        try:
            data = yaml.safe_load(self.metadata_path.read_text())
        except (yaml.YAMLError, OSError):
            # If file is corrupted, treat as empty
            return {}
        return data if isinstance(data, dict) else {}

    def update_last_used(self) -> None:
        """Record that a container was started against this slot."""
        data = self.load()
        data["last_used"] = datetime.now(UTC).isoformat()
        self.save(data)

    def read_allowlist(self) -> list[str]:
        """
        Read the firewall allowlist.

        Returns:
            Domains in file order, comments and blank lines removed
        """
        if not self.allowlist_path.exists():
            return []
        domains = []
        for line in self.allowlist_path.read_text().splitlines():
            entry = line.split("#", 1)[0].strip()
            if entry:
                domains.append(entry)
        return domains

    def delete(self) -> None:
        """Delete the entire slot directory."""
        if self.slot_dir.exists():
            shutil.rmtree(self.slot_dir)


class SlotManager:
    """Manages all slots for a project."""

    def __init__(self, container_manager: ContainerManager | None = None) -> None:
        """
        Initialize slot manager.

        Args:
            container_manager: Docker access for ACTIVE checks. Without it,
                slots whose activity cannot be checked are reported UNKNOWN.
        """
        self.container_manager = container_manager

    def get_slot(self, ctx: ProjectContext, ordinal: int) -> Slot:
        """
        Get an existing slot.

        Raises:
            SlotNotFoundError: If the slot directory doesn't exist
        """
        slot = Slot(ctx, ordinal)
        if ordinal < 1 or not slot.exists():
            raise SlotNotFoundError(
                message=f"Slot {ordinal} does not exist",
                suggestion="Run 'slotbox slots' to see existing slots",
            )
        return slot

    def ordinals(self, ctx: ProjectContext) -> list[int]:
        """Ordinals of existing slot directories, ascending."""
        if not ctx.slots_dir.exists():
            return []

        ordinals = []
        for slot_dir in ctx.slots_dir.glob("slot-*"):
            if not slot_dir.is_dir():
                continue
            try:
                ordinals.append(int(slot_dir.name.split("-", 1)[1]))
            except ValueError:
                # Skip malformed directory names
                continue
        return sorted(n for n in ordinals if n >= 1)

    def state(self, ctx: ProjectContext, ordinal: int) -> SlotState:
        """
        Determine a slot's current state.

        Args:
            ctx: Project context
            ordinal: Slot number

        Returns:
            NONE if the directory is absent, ACTIVE if its container is
            running, UNKNOWN if Docker is not available, otherwise CREATED
            (never run) or READY
        """
        slot = Slot(ctx, ordinal)
        if not slot.exists():
            return SlotState.NONE
        if self.container_manager is None:
            return SlotState.UNKNOWN
        if self.container_manager.is_container_running(ctx.slot_container_name(ordinal)):
            return SlotState.ACTIVE
        if slot.load().get("last_used") is None:
            return SlotState.CREATED
        return SlotState.READY

    def list_slots(self, ctx: ProjectContext) -> list[SlotInfo]:
        """
        List all slots in ordinal order with live state.

        Args:
            ctx: Project context

        Returns:
            SlotInfo per existing slot
        """
        slots = []
        for ordinal in self.ordinals(ctx):
            slot = Slot(ctx, ordinal)
            metadata = slot.load()
            slots.append(
                SlotInfo(
                    ordinal=ordinal,
                    state=self.state(ctx, ordinal),
                    path=slot.slot_dir,
                    container_name=ctx.slot_container_name(ordinal),
                    created_at=metadata.get("created_at"),
                    last_used=metadata.get("last_used"),
                )
            )
        return slots

    def create(self, ctx: ProjectContext) -> SlotInfo:
        """
        Allocate a new slot.

        Takes the smallest ordinal that has no directory. An ordinal whose
        directory exists is never reused, even if the directory is empty.

        Args:
            ctx: Project context

        Returns:
            SlotInfo for the new slot, in CREATED state

        Raises:
            NoAvailableSlotsError: If every ordinal up to max_slots is taken
        """
        max_slots = ctx.config.slots.max_slots

        with project_lock(ctx.data_root):
            taken = set(self.ordinals(ctx))
            free = next((n for n in range(1, max_slots + 1) if n not in taken), None)
            if free is None:
                raise NoAvailableSlotsError(
                    message=f"All {max_slots} slots are in use",
                    suggestion="Remove one with 'slotbox revoke <n>', or raise slots.max_slots "
                    "in ~/.slotbox/config.yml",
                )

            slot = Slot(ctx, free)
            slot.initialize()
            logger.debug("Created slot %d at %s", free, slot.slot_dir)

        metadata = slot.load()
        return SlotInfo(
            ordinal=free,
            state=SlotState.CREATED,
            path=slot.slot_dir,
            container_name=ctx.slot_container_name(free),
            created_at=metadata.get("created_at"),
        )

    def _require_runtime(self) -> ContainerManager:
        if self.container_manager is None:
            raise RuntimeUnavailableError(
                message="Docker is not available, so slot activity cannot be checked",
                suggestion="Start Docker and retry. Run: docker ps",
            )
        return self.container_manager

    def revoke(self, ctx: ProjectContext, ordinal: int) -> None:
        """
        Delete a slot and its authentication state. Irreversible.

        Args:
            ctx: Project context
            ordinal: Slot number

        Raises:
            SlotNotFoundError: If the slot doesn't exist
            SlotActiveError: If a container is running against the slot
            RuntimeUnavailableError: If Docker can't be asked whether it is running
        """
        self._require_runtime()

        with project_lock(ctx.data_root):
            slot = self.get_slot(ctx, ordinal)
            if self.state(ctx, ordinal) == SlotState.ACTIVE:
                raise SlotActiveError(
                    message=f"Slot {ordinal} is running and cannot be revoked",
                    suggestion=f"Exit the session first (docker stop "
                    f"{ctx.slot_container_name(ordinal)}), then retry",
                )
            slot.delete()
            logger.debug("Revoked slot %d", ordinal)

    def compact(self, ctx: ProjectContext) -> dict[int, int]:
        """
        Renumber slots to 1..k, closing gaps left by revoke.

        Args:
            ctx: Project context

        Returns:
            Mapping of old ordinal to new ordinal for every moved slot

        Raises:
            SlotActiveError: If any slot is running
            RuntimeUnavailableError: If Docker can't be asked
        """
        self._require_runtime()

        with project_lock(ctx.data_root):
            ordinals = self.ordinals(ctx)
            active = [n for n in ordinals if self.state(ctx, n) == SlotState.ACTIVE]
            if active:
                raise SlotActiveError(
                    message="Cannot compact while slot(s) "
                    f"{', '.join(map(str, active))} are running",
                    suggestion="Exit running sessions, then run: slotbox compact",
                )

            moved: dict[int, int] = {}
            for new_ordinal, old_ordinal in enumerate(ordinals, start=1):
                if old_ordinal == new_ordinal:
                    continue
                source = Slot(ctx, old_ordinal).slot_dir
                shutil.move(str(source), str(Slot(ctx, new_ordinal).slot_dir))
                moved[old_ordinal] = new_ordinal

        logger.debug("Compacted slots: %s", moved)
        return moved

    def pick_ready(self, ctx: ProjectContext) -> SlotInfo:
        """
        Pick the first READY slot in ordinal order.

        Raises:
            NoSlotsError: If the project has no slots at all
            NoReadySlotError: If slots exist but none is READY
        """
        slots = self.list_slots(ctx)
        if not slots:
            raise NoSlotsError(
                message="This project has no slots yet",
                suggestion="Create and authenticate your first slot: slotbox create",
            )

        for slot in slots:
            if slot.state == SlotState.READY:
                return slot

        raise NoReadySlotError(
            message="No ready slot: every slot is running or not yet authenticated",
            suggestion="Run 'slotbox slots' to see them, 'slotbox create' for a new one, "
            "or 'slotbox slot <n>' to use a specific slot",
        )

    def mark_used(self, ctx: ProjectContext, ordinal: int) -> None:
        """Record a run against a slot (CREATED becomes READY once it exits)."""
        self.get_slot(ctx, ordinal).update_last_used()

    def read_allowlist(self, ctx: ProjectContext, ordinal: int) -> list[str]:
        """
        Domains a slot's firewall lets through.

        Raises:
            SlotNotFoundError: If the slot doesn't exist
        """
        return self.get_slot(ctx, ordinal).read_allowlist()
