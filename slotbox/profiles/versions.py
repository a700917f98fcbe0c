"""
Runtime version detection for versioned profiles.

Sources are consulted in a fixed order and the first non-empty, well-formed
value wins:

1. Environment override (SLOTBOX_<TOOL>_VERSION)
2. Dedicated version file (.ruby-version, .go-version, .nvmrc, ...)
3. Version-manager config (mise.toml / .mise.toml, then .tool-versions)
4. Ecosystem manifest (Gemfile, go.mod, package.json)
5. Built-in default

A malformed value is logged and skipped, so detection moves on to the next
source instead of failing the build.
"""

import json
import os
import re
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from slotbox.profiles.models import RuntimeVersionSpec
from slotbox.utils.logging import get_logger

logger = get_logger(__name__)

TOOL_ALIASES: dict[str, tuple[str, ...]] = {"node": ("nodejs",)}

_OPERATOR_PREFIX = re.compile(r"^[~><=^]+\s*")
_GEMFILE_RUBY = re.compile(r"""^\s*ruby\s+['"]([^'"]+)['"]""", re.MULTILINE)
_GO_MOD_DIRECTIVE = re.compile(r"^go\s+(\S+)", re.MULTILINE)


@dataclass(frozen=True)
class ResolvedVersion:
    """A detected version and the source it came from."""

    version: str
    source: str


def normalize_version(raw: str, tool: str) -> str:
    """
    Clean a raw version string.

    Strips whitespace, a tool prefix (``ruby-3.2.0``), a ``v`` prefix, and
    leading range operators (``~> 3.2``, ``>=18``).

    Example:
        >>> normalize_version(" ruby-3.3.1\\n", "ruby")
        '3.3.1'
    """
    value = raw.strip()
    for name in (tool, *TOOL_ALIASES.get(tool, ())):
        if value.startswith(f"{name}-"):
            value = value[len(name) + 1 :]
            break
    value = _OPERATOR_PREFIX.sub("", value)
    if value[:1] in ("v", "V") and value[1:2].isdigit():
        value = value[1:]
    return value.strip()


def _read_first_line(path: Path) -> str:
    try:
        with path.open(encoding="utf-8") as f:
            return f.readline().strip()
    except (OSError, UnicodeDecodeError):
        return ""


class VersionResolver:
    """Detects runtime versions from a project directory."""

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        """
        Initialize the resolver.

        Args:
            env: Environment to read overrides from (defaults to os.environ)
        """
        self.env = env if env is not None else os.environ

    def resolve(self, spec: RuntimeVersionSpec, project_dir: Path) -> ResolvedVersion:
        """
        Resolve the version for a tool.

        Args:
            spec: Where to look and what to accept
            project_dir: Project directory holding the version signals

        Returns:
            ResolvedVersion; falls back to the spec default when nothing matches
        """
        sources: list[tuple[str, Callable[[], str]]] = [
            (spec.env_var, lambda: self.env.get(spec.env_var, "")),
        ]
        for filename in spec.version_files:
            sources.append((filename, lambda f=filename: _read_first_line(project_dir / f)))
        sources.append(("mise.toml", lambda: self._from_mise(spec, project_dir)))
        sources.append((".tool-versions", lambda: self._from_tool_versions(spec, project_dir)))
        if spec.manifest:
            sources.append((spec.manifest, lambda: self._from_manifest(spec, project_dir)))

        for source, read in sources:
            raw = read()
            if not raw:
                continue
            version = normalize_version(raw, spec.tool)
            if spec.is_valid(version):
                logger.debug("Using %s %s from %s", spec.tool, version, source)
                return ResolvedVersion(version=version, source=source)
            logger.warning(
                "Ignoring invalid %s version %r from %s", spec.tool, raw.strip(), source
            )

        logger.debug("No %s version specified, using default %s", spec.tool, spec.default)
        return ResolvedVersion(version=spec.default, source="default")

    def _tool_names(self, spec: RuntimeVersionSpec) -> tuple[str, ...]:
        return (spec.tool, *TOOL_ALIASES.get(spec.tool, ()))

    def _from_mise(self, spec: RuntimeVersionSpec, project_dir: Path) -> str:
        """Read ``tool = "x"`` or ``tool = { version = "x" }`` from mise config."""
        # .mise.toml takes precedence when both exist
        candidates = [project_dir / ".mise.toml", project_dir / "mise.toml"]
        mise_file = next((p for p in candidates if p.is_file()), None)
        if mise_file is None:
            return ""

        try:
            data = tomllib.loads(mise_file.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
            logger.warning("Could not parse %s: %s", mise_file, e)
            return ""

        tables: list[Any] = [data.get("tools", {}), data]
        for table in tables:
            if not isinstance(table, dict):
                continue
            for name in self._tool_names(spec):
                value = table.get(name)
                if isinstance(value, list) and value:
                    value = value[0]
                if isinstance(value, dict):
                    value = value.get("version")
                if isinstance(value, str) and value:
                    return value
        return ""

    def _from_tool_versions(self, spec: RuntimeVersionSpec, project_dir: Path) -> str:
        path = project_dir / ".tool-versions"
        if not path.is_file():
            return ""
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError):
            return ""

        names = self._tool_names(spec)
        for line in lines:
            parts = line.split("#", 1)[0].split()
            if len(parts) >= 2 and parts[0] in names:
                return parts[1]
        return ""

    def _from_manifest(self, spec: RuntimeVersionSpec, project_dir: Path) -> str:
        if spec.manifest == "gemfile":
            return self._match_file(project_dir / "Gemfile", _GEMFILE_RUBY)
        if spec.manifest == "go_mod":
            return self._match_file(project_dir / "go.mod", _GO_MOD_DIRECTIVE)
        if spec.manifest == "package_json":
            return self._from_package_json(project_dir / "package.json")
        return ""

    @staticmethod
    def _match_file(path: Path, pattern: re.Pattern[str]) -> str:
        if not path.is_file():
            return ""
        try:
            match = pattern.search(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError):
            return ""
        return match.group(1) if match else ""

    @staticmethod
    def _from_package_json(path: Path) -> str:
        if not path.is_file():
            return ""
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Could not parse %s: %s", path, e)
            return ""
        engines = data.get("engines") if isinstance(data, dict) else None
        node = engines.get("node") if isinstance(engines, dict) else None
        return node if isinstance(node, str) else ""
