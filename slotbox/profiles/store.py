"""
Persisted per-project profile selection.

Selection state lives in <data root>/profiles.ini, a document of named
sections each holding one item per line:

    [profiles]
    python
    rust

    [packages]
    htop

Blank lines and ``#`` comments are ignored. Writes replace the file
atomically so a crash mid-write leaves the previous document intact. The
store does not serialize concurrent writers; mutating callers hold
slotbox.utils.locking.project_lock.
"""

import os
import tempfile
from pathlib import Path

from slotbox.context import ProjectContext
from slotbox.utils.logging import get_logger

logger = get_logger(__name__)

PROFILES_SECTION = "profiles"
PACKAGES_SECTION = "packages"


def parse_document(text: str) -> dict[str, list[str]]:
    """
    Parse a sectioned document.

    Args:
        text: Document contents

    Returns:
        Section name -> items, both in file order, duplicates dropped
    """
    sections: dict[str, list[str]] = {}
    current: list[str] | None = None

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("[") and line.endswith("]"):
            current = sections.setdefault(line[1:-1].strip(), [])
            continue
        if current is None:
            # Items before the first header belong to no section
            continue
        if line not in current:
            current.append(line)

    return sections


def render_document(sections: dict[str, list[str]]) -> str:
    """Serialize sections back to text, one blank line between sections."""
    blocks = []
    for name, items in sections.items():
        blocks.append("\n".join([f"[{name}]", *items]))
    return "\n\n".join(blocks) + "\n" if blocks else ""


class ProfileStore:
    """Reads and writes a project's profiles.ini."""

    def _load(self, path: Path) -> dict[str, list[str]]:
        if not path.exists():
            return {}
        return parse_document(path.read_text(encoding="utf-8"))

    def _write(self, path: Path, sections: dict[str, list[str]]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".profiles-", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(render_document(sections))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def sections(self, ctx: ProjectContext) -> list[str]:
        """Section names present in the document, in file order."""
        return list(self._load(ctx.profiles_file))

    def read(self, ctx: ProjectContext, section: str) -> list[str]:
        """
        Read a section.

        Args:
            ctx: Project context
            section: Section name (e.g., "profiles")

        Returns:
            Items in stored order; empty when the file or section is absent
        """
        return list(self._load(ctx.profiles_file).get(section, []))

    def merge(self, ctx: ProjectContext, section: str, items: list[str]) -> list[str]:
        """
        Add items to a section.

        Existing items keep their order; genuinely new items are appended.
        Other sections are preserved as they are.

        Args:
            ctx: Project context
            section: Section name
            items: Items to add

        Returns:
            The section's items after the merge
        """
        path = ctx.profiles_file
        sections = self._load(path)
        merged = list(sections.get(section, []))
        for item in items:
            if item and item not in merged:
                merged.append(item)

        sections[section] = merged
        self._write(path, sections)
        logger.debug("Merged %s into [%s] of %s", items, section, path)
        return merged

    def remove(self, ctx: ProjectContext, section: str, items: list[str]) -> list[str]:
        """
        Remove items from a section. Items that are absent are ignored.

        Args:
            ctx: Project context
            section: Section name
            items: Items to remove

        Returns:
            The section's items after removal
        """
        path = ctx.profiles_file
        sections = self._load(path)
        if section not in sections:
            return []

        remaining = [item for item in sections[section] if item not in items]
        sections[section] = remaining
        self._write(path, sections)
        logger.debug("Removed %s from [%s] of %s", items, section, path)
        return remaining
