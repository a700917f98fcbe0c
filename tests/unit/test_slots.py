"""Unit tests for slot management."""

from pathlib import Path
from unittest.mock import Mock

import pytest

from slotbox.config.models import GlobalConfig
from slotbox.containers.slot import (
    DEFAULT_ALLOWLIST,
    SLOT_SUBDIRS,
    Slot,
    SlotManager,
    SlotState,
)
from slotbox.context import ProjectContext
from slotbox.utils.errors import (
    NoAvailableSlotsError,
    NoReadySlotError,
    NoSlotsError,
    RuntimeUnavailableError,
    SlotActiveError,
    SlotNotFoundError,
)


@pytest.fixture
def container_manager() -> Mock:
    """ContainerManager mock where nothing is running."""
    manager = Mock()
    manager.is_container_running.return_value = False
    return manager


@pytest.fixture
def slots(container_manager: Mock) -> SlotManager:
    """SlotManager with a Docker mock."""
    return SlotManager(container_manager)


def _running(ctx: ProjectContext, *ordinals: int):
    names = {ctx.slot_container_name(n) for n in ordinals}
    return lambda name: name in names


class TestSlot:
    """Tests for the on-disk Slot."""

    def test_initialize_layout(self, ctx: ProjectContext) -> None:
        """Test that a new slot has its directories, history and allowlist."""
        slot = Slot(ctx, 1)
        slot.initialize()

        assert slot.slot_dir == ctx.slots_dir / "slot-1"
        for subdir in SLOT_SUBDIRS:
            assert (slot.slot_dir / subdir).is_dir()
        assert slot.history_path.is_file()
        assert slot.allowlist_path.read_text().splitlines() == DEFAULT_ALLOWLIST
        metadata = slot.load()
        assert metadata["created_at"]
        assert metadata["last_used"] is None

    def test_initialize_existing_fails(self, ctx: ProjectContext) -> None:
        """Test that initialize never reuses an existing directory."""
        Slot(ctx, 1).initialize()
        with pytest.raises(FileExistsError):
            Slot(ctx, 1).initialize()

    def test_load_missing_or_corrupted(self, ctx: ProjectContext) -> None:
        """Test that unreadable metadata loads as empty."""
        slot = Slot(ctx, 1)
        assert slot.load() == {}

        slot.slot_dir.mkdir(parents=True)
        slot.metadata_path.write_text("created_at: [unclosed")
        assert slot.load() == {}

        slot.metadata_path.write_text("- just\n- a list\n")
        assert slot.load() == {}

    def test_update_last_used(self, ctx: ProjectContext) -> None:
        """Test that last_used is recorded and created_at kept."""
        slot = Slot(ctx, 1)
        slot.initialize()
        created_at = slot.load()["created_at"]

        slot.update_last_used()

        metadata = slot.load()
        assert metadata["last_used"]
        assert metadata["created_at"] == created_at

    def test_read_allowlist_strips_comments(self, ctx: ProjectContext) -> None:
        """Test that comments and blank lines are dropped."""
        slot = Slot(ctx, 1)
        slot.initialize()
        slot.allowlist_path.write_text("# header\n\ngithub.com  # code\npypi.org\n")

        assert slot.read_allowlist() == ["github.com", "pypi.org"]

    def test_delete(self, ctx: ProjectContext) -> None:
        """Test that delete removes the whole directory."""
        slot = Slot(ctx, 1)
        slot.initialize()
        slot.delete()
        assert not slot.exists()


class TestSlotManagerCreate:
    """Tests for SlotManager.create."""

    def test_first_slot(self, slots: SlotManager, ctx: ProjectContext) -> None:
        """Test that the first slot is 1 and CREATED."""
        info = slots.create(ctx)

        assert info.ordinal == 1
        assert info.state == SlotState.CREATED
        assert info.path == ctx.slots_dir / "slot-1"
        assert info.container_name == ctx.slot_container_name(1)
        assert info.created_at is not None

    def test_sequential(self, slots: SlotManager, ctx: ProjectContext) -> None:
        """Test that ordinals count up."""
        assert [slots.create(ctx).ordinal for _ in range(3)] == [1, 2, 3]

    def test_gap_reused(self, slots: SlotManager, ctx: ProjectContext) -> None:
        """Test that the smallest free ordinal is taken."""
        for _ in range(3):
            slots.create(ctx)
        slots.revoke(ctx, 2)

        assert slots.create(ctx).ordinal == 2
        assert slots.create(ctx).ordinal == 4

    def test_max_slots(
        self, slots: SlotManager, slotbox_home: Path, project_dir: Path
    ) -> None:
        """Test that the configured limit is enforced."""
        config = GlobalConfig()
        config.slots.max_slots = 2
        ctx = ProjectContext.from_path(project_dir, config=config)

        slots.create(ctx)
        slots.create(ctx)
        with pytest.raises(NoAvailableSlotsError):
            slots.create(ctx)

    def test_works_without_docker(self, ctx: ProjectContext) -> None:
        """Test that slots can be created without a runtime."""
        assert SlotManager().create(ctx).ordinal == 1


class TestSlotManagerState:
    """Tests for slot state and listing."""

    def test_none_for_missing(self, slots: SlotManager, ctx: ProjectContext) -> None:
        """Test that a missing slot has state NONE."""
        assert slots.state(ctx, 1) == SlotState.NONE

    def test_created_then_ready(self, slots: SlotManager, ctx: ProjectContext) -> None:
        """Test that a slot becomes READY after its first run."""
        slots.create(ctx)
        assert slots.state(ctx, 1) == SlotState.CREATED

        slots.mark_used(ctx, 1)
        assert slots.state(ctx, 1) == SlotState.READY

    def test_active_while_running(
        self, slots: SlotManager, container_manager: Mock, ctx: ProjectContext
    ) -> None:
        """Test that a running container makes the slot ACTIVE."""
        slots.create(ctx)
        container_manager.is_container_running.side_effect = _running(ctx, 1)

        assert slots.state(ctx, 1) == SlotState.ACTIVE
        container_manager.is_container_running.assert_called_with(ctx.slot_container_name(1))

    def test_unknown_without_docker(self, ctx: ProjectContext) -> None:
        """Test that state is UNKNOWN when activity can't be checked."""
        manager = SlotManager()
        manager.create(ctx)

        assert manager.state(ctx, 1) == SlotState.UNKNOWN

    def test_list_in_ordinal_order(self, slots: SlotManager, ctx: ProjectContext) -> None:
        """Test that list_slots is sorted by ordinal and carries metadata."""
        for _ in range(3):
            slots.create(ctx)
        slots.mark_used(ctx, 2)

        listed = slots.list_slots(ctx)
        assert [s.ordinal for s in listed] == [1, 2, 3]
        assert [s.state for s in listed] == [
            SlotState.CREATED,
            SlotState.READY,
            SlotState.CREATED,
        ]
        assert listed[1].last_used is not None

    def test_ordinals_ignore_stray_entries(
        self, slots: SlotManager, ctx: ProjectContext
    ) -> None:
        """Test that malformed names and files are not slots."""
        slots.create(ctx)
        (ctx.slots_dir / "slot-abc").mkdir()
        (ctx.slots_dir / "slot-0").mkdir()
        (ctx.slots_dir / "slot-7").write_text("not a dir")

        assert slots.ordinals(ctx) == [1]

    def test_ordinals_sorted_numerically(self, slots: SlotManager, ctx: ProjectContext) -> None:
        """Test that slot-10 sorts after slot-9."""
        for n in (10, 9, 1):
            Slot(ctx, n).initialize()
        assert slots.ordinals(ctx) == [1, 9, 10]


class TestSlotManagerRevoke:
    """Tests for SlotManager.revoke."""

    def test_revoke(self, slots: SlotManager, ctx: ProjectContext) -> None:
        """Test that revoke deletes the slot directory."""
        info = slots.create(ctx)
        slots.revoke(ctx, 1)

        assert not info.path.exists()
        assert slots.ordinals(ctx) == []

    def test_revoke_missing(self, slots: SlotManager, ctx: ProjectContext) -> None:
        """Test revoking a slot that doesn't exist."""
        with pytest.raises(SlotNotFoundError):
            slots.revoke(ctx, 5)

    def test_revoke_active_refused(
        self, slots: SlotManager, container_manager: Mock, ctx: ProjectContext
    ) -> None:
        """Test that a running slot is not deleted."""
        info = slots.create(ctx)
        container_manager.is_container_running.side_effect = _running(ctx, 1)

        with pytest.raises(SlotActiveError):
            slots.revoke(ctx, 1)
        assert info.path.exists()

    def test_revoke_needs_docker(self, ctx: ProjectContext) -> None:
        """Test that revoke refuses when activity can't be checked."""
        manager = SlotManager()
        manager.create(ctx)

        with pytest.raises(RuntimeUnavailableError):
            manager.revoke(ctx, 1)
        assert manager.ordinals(ctx) == [1]


class TestSlotManagerCompact:
    """Tests for SlotManager.compact."""

    def test_compact_closes_gaps(self, slots: SlotManager, ctx: ProjectContext) -> None:
        """Test renumbering after revokes, keeping slot contents."""
        for _ in range(4):
            slots.create(ctx)
        (Slot(ctx, 3).slot_dir / ".claude" / "token").write_text("three")
        slots.revoke(ctx, 1)
        slots.revoke(ctx, 2)

        moved = slots.compact(ctx)

        assert moved == {3: 1, 4: 2}
        assert slots.ordinals(ctx) == [1, 2]
        assert (Slot(ctx, 1).slot_dir / ".claude" / "token").read_text() == "three"

    def test_compact_nothing_to_do(self, slots: SlotManager, ctx: ProjectContext) -> None:
        """Test that contiguous slots are left alone."""
        slots.create(ctx)
        slots.create(ctx)
        assert slots.compact(ctx) == {}

    def test_compact_refused_while_active(
        self, slots: SlotManager, container_manager: Mock, ctx: ProjectContext
    ) -> None:
        """Test that compact refuses while any slot is running."""
        for _ in range(3):
            slots.create(ctx)
        slots.revoke(ctx, 1)
        container_manager.is_container_running.side_effect = _running(ctx, 3)

        with pytest.raises(SlotActiveError, match="3"):
            slots.compact(ctx)
        assert slots.ordinals(ctx) == [2, 3]


class TestSlotManagerPickReady:
    """Tests for SlotManager.pick_ready."""

    def test_no_slots(self, slots: SlotManager, ctx: ProjectContext) -> None:
        """Test picking when the project has no slots."""
        with pytest.raises(NoSlotsError):
            slots.pick_ready(ctx)

    def test_only_created(self, slots: SlotManager, ctx: ProjectContext) -> None:
        """Test that CREATED slots are never picked."""
        slots.create(ctx)
        with pytest.raises(NoReadySlotError):
            slots.pick_ready(ctx)

    def test_skips_active(
        self, slots: SlotManager, container_manager: Mock, ctx: ProjectContext
    ) -> None:
        """Test that the first READY slot that isn't running is picked."""
        for n in range(1, 4):
            slots.create(ctx)
            slots.mark_used(ctx, n)
        container_manager.is_container_running.side_effect = _running(ctx, 1)

        assert slots.pick_ready(ctx).ordinal == 2

    def test_all_active(
        self, slots: SlotManager, container_manager: Mock, ctx: ProjectContext
    ) -> None:
        """Test that no slot is picked when all are running."""
        slots.create(ctx)
        slots.mark_used(ctx, 1)
        container_manager.is_container_running.side_effect = _running(ctx, 1)

        with pytest.raises(NoReadySlotError):
            slots.pick_ready(ctx)


class TestSlotManagerMisc:
    """Tests for mark_used and allowlists."""

    def test_mark_used_missing(self, slots: SlotManager, ctx: ProjectContext) -> None:
        """Test marking a slot that doesn't exist."""
        with pytest.raises(SlotNotFoundError):
            slots.mark_used(ctx, 1)

    def test_get_slot_rejects_zero(self, slots: SlotManager, ctx: ProjectContext) -> None:
        """Test that ordinals start at 1."""
        with pytest.raises(SlotNotFoundError):
            slots.get_slot(ctx, 0)

    def test_read_allowlist(self, slots: SlotManager, ctx: ProjectContext) -> None:
        """Test the default allowlist of a new slot."""
        slots.create(ctx)
        assert slots.read_allowlist(ctx, 1) == [
            "api.anthropic.com",
            "console.anthropic.com",
            "statsig.anthropic.com",
            "sentry.io",
        ]

    def test_list_builtin_not_shadowed(self) -> None:
        """Test that annotations in the class body still see the builtin list."""
        assert not hasattr(SlotManager, "list")
        assert SlotManager.read_allowlist.__annotations__["return"] == list[str]
