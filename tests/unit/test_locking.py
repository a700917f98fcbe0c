"""Unit tests for the per-project lock."""

import fcntl
import threading
from collections.abc import Callable
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from slotbox.cli.commands.profile import add_command
from slotbox.containers.builder import ImageBuildCoordinator
from slotbox.containers.slot import SlotManager
from slotbox.context import ProjectContext
from slotbox.profiles.planner import ExpandedPlan
from slotbox.profiles.store import PROFILES_SECTION, ProfileStore
from slotbox.utils.errors import LockError
from slotbox.utils.locking import LOCK_FILENAME, project_lock


def _try_lock(path: Path) -> bool:
    """Try to take the lock from a separate open file, without blocking."""
    with path.open("a+") as handle:
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            return False
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        return True


class TestProjectLock:
    """Tests for project_lock."""

    def test_creates_lock_file(self, tmp_path: Path) -> None:
        """Test that the lock file is created in the data root."""
        with project_lock(tmp_path):
            assert (tmp_path / LOCK_FILENAME).exists()

    def test_exclusive_while_held(self, tmp_path: Path) -> None:
        """Test that nobody else can take the lock while it is held."""
        with project_lock(tmp_path):
            assert not _try_lock(tmp_path / LOCK_FILENAME)
        assert _try_lock(tmp_path / LOCK_FILENAME)

    def test_released_on_exception(self, tmp_path: Path) -> None:
        """Test that the lock is released when the block raises."""
        with pytest.raises(RuntimeError), project_lock(tmp_path):
            raise RuntimeError("boom")

        assert _try_lock(tmp_path / LOCK_FILENAME)

    def test_creates_missing_data_root(self, tmp_path: Path) -> None:
        """Test that a missing data root is created."""
        data_root = tmp_path / "new" / "root"
        with project_lock(data_root):
            pass
        assert data_root.is_dir()

    def test_unusable_data_root(self, tmp_path: Path) -> None:
        """Test that a data root that is a file raises LockError."""
        not_a_dir = tmp_path / "file"
        not_a_dir.write_text("x")

        with pytest.raises(LockError), project_lock(not_a_dir):
            pass


def _blocked_until_released(data_root: Path, operation: Callable[[], object]) -> object:
    """Run operation in a thread while the lock is held; return its result after release."""
    result: dict[str, object] = {}

    def target() -> None:
        result["value"] = operation()

    with project_lock(data_root):
        worker = threading.Thread(target=target)
        worker.start()
        worker.join(timeout=0.3)
        assert worker.is_alive()
        assert "value" not in result

    worker.join(timeout=10)
    assert not worker.is_alive()
    assert "value" in result
    return result["value"]


@pytest.fixture
def container_manager() -> Mock:
    """ContainerManager mock with no image and nothing running."""
    manager = Mock()
    manager.is_container_running.return_value = False
    manager.get_image_labels.return_value = None
    manager.image_exists.return_value = True
    manager.prune_dangling_images.return_value = {"ImagesDeleted": [], "SpaceReclaimed": 0}
    return manager


class TestMutationsWaitForLock:
    """Tests that mutating operations run under the project lock."""

    def test_slot_create(self, ctx: ProjectContext) -> None:
        """Test that creating a slot waits for the lock holder."""
        slots = SlotManager()

        _blocked_until_released(ctx.data_root, lambda: slots.create(ctx))
        assert slots.ordinals(ctx) == [1]

    def test_slot_revoke(self, ctx: ProjectContext, container_manager: Mock) -> None:
        """Test that the slot survives until the lock holder is done."""
        slots = SlotManager(container_manager)
        slots.create(ctx)

        with project_lock(ctx.data_root):
            worker = threading.Thread(target=lambda: slots.revoke(ctx, 1))
            worker.start()
            worker.join(timeout=0.3)
            assert worker.is_alive()
            assert slots.ordinals(ctx) == [1]

        worker.join(timeout=10)
        assert slots.ordinals(ctx) == []

    def test_slot_compact(self, ctx: ProjectContext, container_manager: Mock) -> None:
        """Test that renumbering waits for the lock holder."""
        slots = SlotManager(container_manager)
        for _ in range(2):
            slots.create(ctx)
        slots.revoke(ctx, 1)

        assert _blocked_until_released(ctx.data_root, lambda: slots.compact(ctx)) == {2: 1}

    def test_image_build(self, ctx: ProjectContext, container_manager: Mock) -> None:
        """Test that a build does not start while the lock is held."""
        plan = ExpandedPlan(profiles=["core"], packages=[], fingerprint="a" * 16)
        coordinator = ImageBuildCoordinator(container_manager)

        with project_lock(ctx.data_root):
            worker = threading.Thread(target=lambda: coordinator.ensure_image(ctx, plan))
            worker.start()
            worker.join(timeout=0.3)
            assert worker.is_alive()
            container_manager.build_image.assert_not_called()

        worker.join(timeout=10)
        assert not worker.is_alive()
        container_manager.build_image.assert_called_once()

    @patch("slotbox.cli.commands.profile.console")
    def test_profile_add(self, _mock_console: Mock, ctx: ProjectContext) -> None:
        """Test that the selection is written only after the lock is released."""
        selection = _blocked_until_released(ctx.data_root, lambda: add_command(ctx, ["go"]))

        assert selection == ["go"]
        assert ProfileStore().read(ctx, PROFILES_SECTION) == ["go"]
