"""Pytest configuration and fixtures."""

import tempfile
from pathlib import Path

import pytest

from slotbox.config.models import GlobalConfig
from slotbox.context import ProjectContext


@pytest.fixture(scope="session", autouse=True)
def _set_temp_home(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """Point HOME to a writable temporary directory for tests."""
    temp_home = tmp_path_factory.mktemp("home")
    # Ensure any code relying on HOME uses the temporary location
    import os

    os.environ["HOME"] = str(temp_home)
    os.environ.pop("SLOTBOX_HOME", None)
    return temp_home


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def slotbox_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Give each test its own slotbox home."""
    home = tmp_path / "slotbox-home"
    monkeypatch.setenv("SLOTBOX_HOME", str(home))
    return home


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Create an empty project directory."""
    project = tmp_path / "My Project"
    project.mkdir()
    return project


@pytest.fixture
def ctx(slotbox_home: Path, project_dir: Path) -> ProjectContext:
    """Project context with default configuration."""
    return ProjectContext.from_path(project_dir, config=GlobalConfig())
