"""Unit tests for profile commands."""

from unittest.mock import MagicMock, patch

import pytest

from slotbox.cli.commands.profile import (
    add_command,
    install_command,
    profiles_command,
    remove_command,
)
from slotbox.context import ProjectContext
from slotbox.profiles.store import PACKAGES_SECTION, PROFILES_SECTION, ProfileStore
from slotbox.utils.errors import UnknownProfileError


@pytest.fixture(autouse=True)
def mock_console():
    """Silence and capture console output."""
    with patch("slotbox.cli.commands.profile.console") as console:
        yield console


def _printed(console: MagicMock) -> str:
    return "\n".join(str(c.args[0]) for c in console.print.call_args_list if c.args)


class TestAddCommand:
    """Tests for add_command."""

    def test_add_persists_selection(self, ctx: ProjectContext, mock_console: MagicMock) -> None:
        """Test that added profiles are stored and their expansion shown."""
        assert add_command(ctx, ["rust", "python"]) == ["rust", "python"]

        assert ProfileStore().read(ctx, PROFILES_SECTION) == ["rust", "python"]
        assert "core, rust, python" in _printed(mock_console)

    def test_add_is_idempotent(self, ctx: ProjectContext) -> None:
        """Test that adding a selected profile changes nothing."""
        add_command(ctx, ["python"])
        assert add_command(ctx, ["python"]) == ["python"]

    def test_unknown_profile_changes_nothing(self, ctx: ProjectContext) -> None:
        """Test that validation happens before anything is written."""
        add_command(ctx, ["python"])

        with pytest.raises(UnknownProfileError):
            add_command(ctx, ["rust", "cobol"])

        assert ProfileStore().read(ctx, PROFILES_SECTION) == ["python"]


class TestRemoveCommand:
    """Tests for remove_command."""

    def test_remove(self, ctx: ProjectContext) -> None:
        """Test removing a selected profile."""
        add_command(ctx, ["python", "rust"])
        assert remove_command(ctx, ["python"]) == ["rust"]

    def test_remove_last(self, ctx: ProjectContext, mock_console: MagicMock) -> None:
        """Test removing the only selected profile."""
        add_command(ctx, ["python"])

        assert remove_command(ctx, ["python"]) == []
        assert "No profiles selected" in _printed(mock_console)

    def test_unknown_profile_changes_nothing(self, ctx: ProjectContext) -> None:
        """Test that a typo in a multi-profile remove leaves the selection as is."""
        add_command(ctx, ["python", "rust"])

        with pytest.raises(UnknownProfileError) as exc_info:
            remove_command(ctx, ["python", "pythn"])

        assert exc_info.value.profile_ids == ["pythn"]
        assert ProfileStore().read(ctx, PROFILES_SECTION) == ["python", "rust"]


class TestInstallCommand:
    """Tests for install_command."""

    def test_install_keeps_profiles(self, ctx: ProjectContext) -> None:
        """Test that packages go to their own section."""
        add_command(ctx, ["python"])

        assert install_command(ctx, ["htop"]) == ["htop"]
        assert ProfileStore().read(ctx, PACKAGES_SECTION) == ["htop"]
        assert ProfileStore().read(ctx, PROFILES_SECTION) == ["python"]


class TestProfilesCommand:
    """Tests for profiles_command."""

    def test_lists_selection(self, ctx: ProjectContext, mock_console: MagicMock) -> None:
        """Test that the selection and extra packages are summarized."""
        add_command(ctx, ["go"])
        install_command(ctx, ["htop"])
        mock_console.reset_mock()

        profiles_command(ctx)

        printed = _printed(mock_console)
        assert "Selected:[/bold] go" in printed
        assert "Extra packages:[/bold] htop" in printed

    def test_empty_selection(self, ctx: ProjectContext, mock_console: MagicMock) -> None:
        """Test listing with nothing selected."""
        profiles_command(ctx)
        assert "Selected:" not in _printed(mock_console)
