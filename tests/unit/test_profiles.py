"""
Unit tests for the profile catalog and profile models.

Tests cover:
- Prerequisite expansion
- Validation of unknown ids
- Package lookup
- Build step placeholder substitution
- Kind validation
"""

import pytest
from pydantic import ValidationError

from slotbox.profiles.catalog import PROFILES, ProfileCatalog
from slotbox.profiles.models import (
    EnvStep,
    PackageInstallStep,
    ProfileDefinition,
    RuntimeVersionSpec,
    ScriptStep,
)
from slotbox.utils.errors import UnknownProfileError


@pytest.fixture
def catalog() -> ProfileCatalog:
    """Catalog of the built-in profiles."""
    return ProfileCatalog()


class TestProfileCatalog:
    """Tests for ProfileCatalog."""

    def test_expand_core_has_no_prerequisites(self, catalog: ProfileCatalog) -> None:
        """Test that core expands to itself."""
        assert catalog.expand("core") == ["core"]

    def test_expand_puts_prerequisites_first(self, catalog: ProfileCatalog) -> None:
        """Test that prerequisites come before the profile, in order."""
        assert catalog.expand("c") == ["core", "build-tools", "c"]
        assert catalog.expand("python") == ["core", "python"]
        assert catalog.expand("ml") == ["core", "build-tools", "ml"]

    def test_expand_unknown_returns_itself(self, catalog: ProfileCatalog) -> None:
        """Test that unknown ids pass through expansion unchanged."""
        assert catalog.expand("cobol") == ["cobol"]

    def test_validate_accepts_known(self, catalog: ProfileCatalog) -> None:
        """Test that known ids validate."""
        catalog.validate(["python", "rust", "core"])

    def test_validate_names_every_unknown(self, catalog: ProfileCatalog) -> None:
        """Test that all unknown ids are reported together."""
        with pytest.raises(UnknownProfileError) as exc_info:
            catalog.validate(["python", "cobol", "fortran"])

        assert exc_info.value.profile_ids == ["cobol", "fortran"]

    def test_get_unknown_raises(self, catalog: ProfileCatalog) -> None:
        """Test that get raises for an unknown id."""
        with pytest.raises(UnknownProfileError):
            catalog.get("cobol")

    def test_packages_for(self, catalog: ProfileCatalog) -> None:
        """Test package lookup for packages, scripted and unknown profiles."""
        core = catalog.packages_for("core")
        assert core[0] == "gcc"
        assert "tmux" in core
        assert catalog.packages_for("rust") == []
        assert catalog.packages_for("cobol") == []

    def test_packages_for_returns_copy(self, catalog: ProfileCatalog) -> None:
        """Test that callers can't modify the catalog through the result."""
        catalog.packages_for("core").append("emacs")
        assert "emacs" not in catalog.packages_for("core")

    def test_all_ids_in_declaration_order(self, catalog: ProfileCatalog) -> None:
        """Test that all_ids lists profiles as declared."""
        ids = catalog.all_ids()
        assert ids == [p.name for p in PROFILES]
        assert ids[:2] == ["core", "build-tools"]

    def test_describe(self, catalog: ProfileCatalog) -> None:
        """Test descriptions for known and unknown ids."""
        assert "Rust" in catalog.describe("rust")
        assert catalog.describe("cobol") == ""

    def test_every_requirement_is_known(self, catalog: ProfileCatalog) -> None:
        """Test that no profile requires something outside the catalog."""
        for profile_id in catalog.all_ids():
            catalog.validate(catalog.get(profile_id).requires)

    @pytest.mark.parametrize(
        ("profile_id", "tool", "default"),
        [
            ("go", "go", "1.21.0"),
            ("javascript", "node", "22"),
            ("ruby", "ruby", "3.4.5"),
        ],
    )
    def test_versioned_profiles(
        self, catalog: ProfileCatalog, profile_id: str, tool: str, default: str
    ) -> None:
        """Test the version detection settings of versioned profiles."""
        profile = catalog.get(profile_id)
        assert profile.kind == "versioned"
        assert profile.version is not None
        assert profile.version.tool == tool
        assert profile.version.default == default


class TestProfileDefinition:
    """Tests for ProfileDefinition validation and build steps."""

    def test_invalid_name_rejected(self) -> None:
        """Test that names must be lowercase with hyphens."""
        with pytest.raises(ValidationError, match="lowercase"):
            ProfileDefinition(name="Bad_Name", description="x")

    def test_packages_kind_cannot_have_steps(self) -> None:
        """Test that packages profiles may not carry install steps."""
        with pytest.raises(ValidationError, match="cannot define install steps"):
            ProfileDefinition(
                name="bad",
                description="x",
                steps=[ScriptStep(commands=["echo hi"])],
            )

    def test_versioned_needs_version_spec(self) -> None:
        """Test that versioned profiles require a version spec."""
        with pytest.raises(ValidationError, match="needs a version spec"):
            ProfileDefinition(name="bad", description="x", kind="versioned")

    def test_version_spec_only_on_versioned(self) -> None:
        """Test that other kinds may not carry a version spec."""
        with pytest.raises(ValidationError, match="only versioned"):
            ProfileDefinition(
                name="bad",
                description="x",
                kind="scripted",
                version=RuntimeVersionSpec(tool="zig", default="0.11.0"),
            )

    def test_build_steps_packages_first(self) -> None:
        """Test that the package step precedes the profile's own steps."""
        profile = ProfileDefinition(
            name="tool",
            description="x",
            kind="scripted",
            packages=["curl"],
            steps=[ScriptStep(commands=["echo hi"])],
        )

        steps = profile.build_steps(user="claude")
        assert isinstance(steps[0], PackageInstallStep)
        assert steps[0].packages == ["curl"]
        assert isinstance(steps[1], ScriptStep)

    def test_build_steps_substitutes_placeholders(self) -> None:
        """Test that ${VERSION} and ${USER} are replaced."""
        profile = ProfileDefinition(
            name="tool",
            description="x",
            kind="versioned",
            version=RuntimeVersionSpec(tool="tool", default="1.0.0"),
            steps=[
                ScriptStep(user="${USER}", commands=["install ${VERSION} for ${USER}"]),
                EnvStep(values={"HOME_DIR": "/home/${USER}"}),
            ],
        )

        script, env = profile.build_steps(user="dev", version="2.1.0")
        assert isinstance(script, ScriptStep)
        assert script.commands == ["install 2.1.0 for dev"]
        assert script.user == "dev"
        assert isinstance(env, EnvStep)
        assert env.values == {"HOME_DIR": "/home/dev"}

    def test_build_steps_leave_definition_untouched(self) -> None:
        """Test that substitution does not modify the catalog entry."""
        profile = ProfileCatalog().get("go")
        profile.build_steps(user="claude", version="1.22.1")

        step = profile.steps[0]
        assert isinstance(step, ScriptStep)
        assert "${VERSION}" in step.commands[0]


class TestRuntimeVersionSpec:
    """Tests for RuntimeVersionSpec."""

    def test_env_var(self) -> None:
        """Test the override variable name."""
        assert RuntimeVersionSpec(tool="ruby", default="3.4.5").env_var == "SLOTBOX_RUBY_VERSION"

    def test_default_pattern(self) -> None:
        """Test the default version pattern."""
        spec = RuntimeVersionSpec(tool="ruby", default="3.4.5")
        assert spec.is_valid("3.3")
        assert spec.is_valid("3.3.1")
        assert not spec.is_valid("3")
        assert not spec.is_valid("latest")
