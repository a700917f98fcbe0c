"""CLI command implementations for slotbox."""

from slotbox.cli.commands.profile import (
    add_command,
    install_command,
    profiles_command,
    remove_command,
)
from slotbox.cli.commands.run import rebuild_command, run_command, shell_command, slot_command
from slotbox.cli.commands.slot import (
    allowlist_command,
    compact_command,
    create_command,
    revoke_command,
    slots_command,
)
from slotbox.cli.commands.status import status_command

__all__ = [
    "add_command",
    "remove_command",
    "install_command",
    "profiles_command",
    "create_command",
    "slots_command",
    "revoke_command",
    "compact_command",
    "allowlist_command",
    "slot_command",
    "run_command",
    "shell_command",
    "rebuild_command",
    "status_command",
]
