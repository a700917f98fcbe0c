"""
Status command implementation.

Shows the project's identity, profile selection, image freshness and slot
states in one place.
"""

from rich.console import Console
from rich.table import Table

from slotbox.containers.builder import ImageBuildCoordinator
from slotbox.containers.manager import ContainerManager
from slotbox.containers.slot import SlotManager
from slotbox.context import ProjectContext
from slotbox.profiles.planner import BuildPlanner
from slotbox.utils.errors import RuntimeUnavailableError

console = Console()


def status_command(ctx: ProjectContext) -> None:
    """
    Show project status including selection, image state and slots.

    Args:
        ctx: Project context
    """
    planner = BuildPlanner()
    plan = planner.plan(ctx)

    try:
        container_manager: ContainerManager | None = ContainerManager()
    except RuntimeUnavailableError:
        container_manager = None

    if container_manager is None:
        image_status = "[yellow]unknown (docker unavailable)[/yellow]"
    else:
        built = ImageBuildCoordinator(container_manager, planner.catalog).current_fingerprint(ctx)
        if built is None:
            image_status = "[yellow]not built[/yellow]"
        elif planner.is_stale(ctx, built):
            image_status = f"[yellow]stale[/yellow] ({built} → {plan.fingerprint})"
        else:
            image_status = f"[green]current[/green] ({built})"

    config_table = Table(title="Project", show_lines=False)
    config_table.add_column("Field", style="cyan", no_wrap=True)
    config_table.add_column("Value", style="white")
    config_table.add_row("Directory", str(ctx.project_dir))
    config_table.add_row("Identity", ctx.identity)
    config_table.add_row("Data", str(ctx.data_root))
    config_table.add_row("Profiles", ", ".join(plan.profiles) or "none")
    config_table.add_row("Extra Packages", ", ".join(plan.packages) or "none")
    for profile_id, version in plan.versions.items():
        config_table.add_row(f"{profile_id} version", version)
    config_table.add_row("Base Image", ctx.config.docker.base_image)
    config_table.add_row("Image", f"{ctx.image_tag} {image_status}")
    console.print(config_table)

    slots = SlotManager(container_manager).list_slots(ctx)
    if not slots:
        console.print("\n[dim]No slots. Create one with: slotbox create[/dim]")
        return

    slot_table = Table(title="Slots", show_lines=False)
    slot_table.add_column("Slot", style="cyan", no_wrap=True)
    slot_table.add_column("State", style="white")
    slot_table.add_column("Created", style="white")
    slot_table.add_column("Last Used", style="white")
    for slot in slots:
        slot_table.add_row(
            str(slot.ordinal), slot.state.value, slot.created_at or "", slot.last_used or ""
        )
    console.print(slot_table)
