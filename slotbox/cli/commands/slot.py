"""
Slot management commands.

Provides commands to create, list, revoke, compact and inspect slots.
"""

from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from slotbox.cli.commands.run import _orchestrator, _prepare_image
from slotbox.containers.manager import ContainerManager
from slotbox.containers.slot import SlotManager, SlotState
from slotbox.context import ProjectContext
from slotbox.utils.errors import RuntimeUnavailableError, SlotActiveError, SlotError

console = Console()

STATE_STYLES = {
    SlotState.CREATED: "[yellow]○[/yellow] Created (not authenticated)",
    SlotState.READY: "[green]●[/green] Ready",
    SlotState.ACTIVE: "[cyan]▶[/cyan] Active",
    SlotState.UNKNOWN: "[dim]? Unknown (docker unavailable)[/dim]",
}


def _slot_manager() -> SlotManager:
    """SlotManager with live state, or without it when Docker is unavailable."""
    try:
        return SlotManager(ContainerManager())
    except RuntimeUnavailableError:
        return SlotManager()


def create_command(ctx: ProjectContext, authenticate: bool = True) -> int:
    """
    Create a slot and start its first session so the user can log in.

    Args:
        ctx: Project context
        authenticate: Start the login session right away

    Returns:
        Exit code of the login session (0 when not authenticating)
    """
    if not authenticate:
        info = SlotManager().create(ctx)
        console.print(f"[bold green]✓[/bold green] Created slot {info.ordinal}")
        console.print(f"[dim]Log in with: slotbox slot {info.ordinal}[/dim]")
        return 0

    orchestrator = _orchestrator()
    _prepare_image(orchestrator, ctx)
    info, exit_code = orchestrator.create_slot(ctx)
    console.print(f"[bold green]✓[/bold green] Slot {info.ordinal} session ended")
    return exit_code or 0


def slots_command(ctx: ProjectContext) -> None:
    """
    List all slots for the project.

    Shows a table with slot numbers, state and last use.
    """
    slots = _slot_manager().list_slots(ctx)

    if not slots:
        console.print("\n[yellow]No slots[/yellow]\n")
        console.print("Run [cyan]slotbox create[/cyan] to create and authenticate one\n")
        return

    table = Table(title="[bold]Slots[/bold]", show_lines=False)
    table.add_column("Slot", style="cyan", justify="center")
    table.add_column("State", style="white")
    table.add_column("Container", style="green")
    table.add_column("Last Used", style="white")

    for slot in slots:
        table.add_row(
            str(slot.ordinal),
            STATE_STYLES.get(slot.state, slot.state.value),
            slot.container_name,
            slot.last_used or "[dim]never[/dim]",
        )

    active = sum(1 for s in slots if s.state == SlotState.ACTIVE)
    max_slots = ctx.config.slots.max_slots
    console.print()
    console.print(table)
    console.print(f"\n[dim]Active: {active}/{len(slots)} | Max slots: {max_slots}[/dim]\n")


def revoke_command(
    ctx: ProjectContext, ordinal: int | None, all_slots: bool = False, yes: bool = False
) -> None:
    """
    Delete slots and their authentication state.

    Args:
        ctx: Project context
        ordinal: Slot to revoke
        all_slots: Revoke every slot that isn't running
        yes: Skip the confirmation prompt
    """
    if ordinal is None and not all_slots:
        raise SlotError(
            message="No slot given to revoke",
            suggestion="Run 'slotbox revoke <n>' or 'slotbox revoke --all'",
        )

    slot_manager = SlotManager(ContainerManager())

    if all_slots:
        targets = slot_manager.ordinals(ctx)
        if not targets:
            console.print("[yellow]No slots to revoke[/yellow]")
            return
    else:
        slot_manager.get_slot(ctx, ordinal)
        targets = [ordinal]

    label = "all slots" if all_slots else f"slot {ordinal}"
    if not yes and not Confirm.ask(
        f"Revoke {label}? Authentication for it is deleted", default=False
    ):
        console.print("\n[yellow]Cancelled[/yellow]\n")
        return

    for target in targets:
        try:
            slot_manager.revoke(ctx, target)
        except SlotActiveError as e:
            if not all_slots:
                raise
            console.print(f"[yellow]⚠[/yellow]  Skipped slot {target}: {e.message}")
            continue
        console.print(f"[bold green]✓[/bold green] Revoked slot {target}")


def compact_command(ctx: ProjectContext) -> None:
    """Renumber slots to close gaps left by revoke."""
    moved = SlotManager(ContainerManager()).compact(ctx)
    if not moved:
        console.print("[bold green]✓[/bold green] Slots are already numbered contiguously")
        return
    for old, new in moved.items():
        console.print(f"[bold green]✓[/bold green] Slot {old} → {new}")


def allowlist_command(ctx: ProjectContext, ordinal: int | None = None) -> None:
    """
    Show the firewall allowlist of one slot, or of every slot.

    Args:
        ctx: Project context
        ordinal: Slot number; all slots when None
    """
    slot_manager = SlotManager()
    ordinals = [ordinal] if ordinal is not None else slot_manager.ordinals(ctx)

    if not ordinals:
        console.print("\n[yellow]No slots[/yellow]\n")
        return

    for number in ordinals:
        slot = slot_manager.get_slot(ctx, number)
        console.print(f"\n[bold]Slot {number}[/bold] [dim]({slot.allowlist_path})[/dim]")
        domains = slot_manager.read_allowlist(ctx, number)
        if not domains:
            console.print("  [dim]empty: all outbound traffic except DNS is blocked[/dim]")
        for domain in domains:
            console.print(f"  • {domain}")
    console.print("\n[dim]Edit the file to change which domains a slot can reach[/dim]\n")
