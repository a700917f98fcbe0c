"""
Profile selection commands.

Adds and removes profiles and extra packages for the current project and
lists the catalog. Changes take effect on the next run, which rebuilds the
image because the plan fingerprint changed.
"""

from rich.console import Console
from rich.table import Table

from slotbox.context import ProjectContext
from slotbox.profiles.catalog import ProfileCatalog
from slotbox.profiles.planner import BuildPlanner
from slotbox.profiles.store import PACKAGES_SECTION, PROFILES_SECTION, ProfileStore
from slotbox.utils.locking import project_lock

console = Console()


def add_command(ctx: ProjectContext, profile_ids: list[str]) -> list[str]:
    """
    Add profiles to the project selection.

    All ids are validated before anything is written, so one unknown id
    leaves the selection untouched.

    Args:
        ctx: Project context
        profile_ids: Profiles to add

    Returns:
        The selection after the change

    Raises:
        UnknownProfileError: If any id is not in the catalog
    """
    ProfileCatalog().validate(profile_ids)

    with project_lock(ctx.data_root):
        selection = ProfileStore().merge(ctx, PROFILES_SECTION, profile_ids)

    expanded = BuildPlanner().expand_all(selection)
    console.print(f"[bold green]✓[/bold green] Profiles: [cyan]{', '.join(selection)}[/cyan]")
    console.print(f"[dim]Installs: {', '.join(expanded)}[/dim]")
    console.print("[dim]The image is rebuilt on the next run (or now: slotbox rebuild)[/dim]")
    return selection


def remove_command(ctx: ProjectContext, profile_ids: list[str]) -> list[str]:
    """
    Remove profiles from the project selection.

    Ids are validated against the catalog first, like in add_command.

    Args:
        ctx: Project context
        profile_ids: Profiles to remove; known ids that aren't selected are ignored

    Returns:
        The selection after the change

    Raises:
        UnknownProfileError: If any id is not in the catalog
    """
    ProfileCatalog().validate(profile_ids)

    with project_lock(ctx.data_root):
        selection = ProfileStore().remove(ctx, PROFILES_SECTION, profile_ids)

    if selection:
        console.print(f"[bold green]✓[/bold green] Profiles: [cyan]{', '.join(selection)}[/cyan]")
    else:
        console.print("[bold green]✓[/bold green] No profiles selected")
    return selection


def install_command(ctx: ProjectContext, packages: list[str]) -> list[str]:
    """
    Add extra apt packages to the project image.

    Args:
        ctx: Project context
        packages: Debian package names

    Returns:
        All extra packages after the change
    """
    with project_lock(ctx.data_root):
        installed = ProfileStore().merge(ctx, PACKAGES_SECTION, packages)

    console.print(
        f"[bold green]✓[/bold green] Extra packages: [cyan]{', '.join(installed)}[/cyan]"
    )
    console.print("[dim]The image is rebuilt on the next run (or now: slotbox rebuild)[/dim]")
    return installed


def profiles_command(ctx: ProjectContext) -> None:
    """
    List all available profiles.

    Shows a table with profile names and descriptions, marking the ones
    selected for this project.
    """
    catalog = ProfileCatalog()
    store = ProfileStore()
    selected = store.read(ctx, PROFILES_SECTION)
    packages = store.read(ctx, PACKAGES_SECTION)

    table = Table(title="[bold]Available Profiles[/bold]", show_lines=False)
    table.add_column("", style="green", no_wrap=True)
    table.add_column("Profile", style="cyan", no_wrap=True)
    table.add_column("Description", style="white")

    for profile_id in catalog.all_ids():
        marker = "✓" if profile_id in selected else ""
        table.add_row(marker, profile_id, catalog.describe(profile_id))

    console.print()
    console.print(table)
    console.print(f"\n[dim]Total: {len(catalog.all_ids())} profiles[/dim]\n")

    if selected:
        console.print(f"[bold]Selected:[/bold] {', '.join(selected)}")
    if packages:
        console.print(f"[bold]Extra packages:[/bold] {', '.join(packages)}")
    console.print("[bold]Usage:[/bold] slotbox add python rust\n")
