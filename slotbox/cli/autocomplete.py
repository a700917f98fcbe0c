"""
Autocompletion functions for slotbox CLI.

Provides custom autocompletion for dynamic values like profiles and slots.
These functions are called by Typer when users press TAB in their shell.
"""

from pathlib import Path

from slotbox.containers.slot import SlotManager
from slotbox.context import ProjectContext
from slotbox.profiles.catalog import ProfileCatalog


def complete_profile_name() -> list[str]:
    """
    Autocomplete profile names.

    Returns:
        List of profile ids (e.g., ["core", "python", "rust"])
    """
    return ProfileCatalog().all_ids()


def complete_slot_number() -> list[str]:
    """
    Autocomplete existing slot numbers for the current project.

    Returns:
        List of slot numbers as strings (e.g., ["1", "2", "3"])
    """
    try:
        ctx = ProjectContext.from_path(Path.cwd())
        return [str(n) for n in SlotManager().ordinals(ctx)]
    except Exception:
        # Fail gracefully if autocomplete fails
        return []
