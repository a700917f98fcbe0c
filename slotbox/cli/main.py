"""Main CLI entry point for slotbox with comprehensive error handling."""

from collections.abc import Callable
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console

from slotbox import __version__
from slotbox.cli.autocomplete import complete_profile_name, complete_slot_number
from slotbox.cli.commands import (
    add_command,
    allowlist_command,
    compact_command,
    create_command,
    install_command,
    profiles_command,
    rebuild_command,
    remove_command,
    revoke_command,
    run_command,
    shell_command,
    slot_command,
    slots_command,
    status_command,
)
from slotbox.containers.runner import RunMode
from slotbox.context import ProjectContext
from slotbox.utils.errors import (
    NoReadySlotError,
    NoSlotsError,
    RuntimeUnavailableError,
    SlotboxError,
    UnknownProfileError,
)
from slotbox.utils.logging import set_debug

app = typer.Typer(
    name="slotbox",
    help="Per-project sandboxed containers for Claude Code, with parallel authenticated slots",
    no_args_is_help=True,
    add_completion=True,
)
console = Console()

PASSTHROUGH = {"allow_extra_args": True, "ignore_unknown_options": True}


def _run_command(
    cli_ctx: typer.Context, func: Callable[..., Any], *args: Any, **kwargs: Any
) -> int:
    """
    Build the project context and run a command, turning errors into exit codes.

    Returns:
        The command's exit code (0 when it returns nothing)
    """
    verbose = bool(cli_ctx.obj and cli_ctx.obj.get("verbose"))
    try:
        ctx = ProjectContext.from_path(Path.cwd(), verbose=verbose)
        result = func(ctx, *args, **kwargs)
    except SlotboxError as e:
        _handle_slotbox_error(e)
    except KeyboardInterrupt:
        console.print("\n\n[yellow]⚠[/yellow]  Cancelled by user")
        raise typer.Exit(130) from None
    except Exception as e:
        _handle_unexpected_error(e)
    return result if isinstance(result, int) else 0


# Profile commands
@app.command()
def add(
    cli_ctx: typer.Context,
    profiles: list[str] = typer.Argument(
        ..., help="Profiles to add", autocompletion=complete_profile_name
    ),
) -> None:
    """
    Add profiles to this project's image.

    Examples:

      slotbox add python rust          # Prerequisites (core) are added automatically
    """
    _run_command(cli_ctx, add_command, profiles)


@app.command()
def remove(
    cli_ctx: typer.Context,
    profiles: list[str] = typer.Argument(
        ..., help="Profiles to remove", autocompletion=complete_profile_name
    ),
) -> None:
    """Remove profiles from this project's image."""
    _run_command(cli_ctx, remove_command, profiles)


@app.command()
def install(
    cli_ctx: typer.Context,
    packages: list[str] = typer.Argument(..., help="Debian packages to add to the image"),
) -> None:
    """
    Install extra apt packages into this project's image.

    Examples:

      slotbox install htop ripgrep
    """
    _run_command(cli_ctx, install_command, packages)


@app.command()
def profiles(cli_ctx: typer.Context) -> None:
    """List available profiles and this project's selection."""
    _run_command(cli_ctx, profiles_command)


# Slot commands
@app.command()
def create(
    cli_ctx: typer.Context,
    no_auth: bool = typer.Option(
        False, "--no-auth", help="Only create the slot; log in later with 'slotbox slot <n>'"
    ),
) -> None:
    """Create a slot and start a session to authenticate it."""
    raise typer.Exit(_run_command(cli_ctx, create_command, authenticate=not no_auth))


@app.command()
def slots(cli_ctx: typer.Context) -> None:
    """List this project's slots and their state."""
    _run_command(cli_ctx, slots_command)


@app.command(context_settings=PASSTHROUGH)
def slot(
    cli_ctx: typer.Context,
    number: int = typer.Argument(..., help="Slot number", autocompletion=complete_slot_number),
    args: list[str] | None = typer.Argument(None, help="Arguments passed to claude"),
    mode: RunMode = typer.Option(
        RunMode.INTERACTIVE, "--mode", "-m", help="How to run the container"
    ),
) -> None:
    """
    Run claude in a specific slot.

    Examples:

      slotbox slot 2                   # Interactive session in slot 2

      slotbox slot 1 -p "fix tests" --mode pipe
    """
    raise typer.Exit(_run_command(cli_ctx, slot_command, number, list(args or []), mode))


@app.command()
def revoke(
    cli_ctx: typer.Context,
    number: int | None = typer.Argument(
        None, help="Slot number", autocompletion=complete_slot_number
    ),
    all_slots: bool = typer.Option(False, "--all", help="Revoke every slot that isn't running"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Don't ask for confirmation"),
) -> None:
    """
    Delete a slot and its authentication.

    Examples:

      slotbox revoke 2

      slotbox revoke --all --yes
    """
    _run_command(cli_ctx, revoke_command, number, all_slots=all_slots, yes=yes)


@app.command()
def compact(cli_ctx: typer.Context) -> None:
    """Renumber slots to 1..N after revokes."""
    _run_command(cli_ctx, compact_command)


@app.command()
def allowlist(
    cli_ctx: typer.Context,
    number: int | None = typer.Argument(
        None, help="Slot number (all slots if omitted)", autocompletion=complete_slot_number
    ),
) -> None:
    """Show the firewall allowlist of a slot."""
    _run_command(cli_ctx, allowlist_command, number)


# Session commands
@app.command(context_settings=PASSTHROUGH)
def run(
    cli_ctx: typer.Context,
    args: list[str] | None = typer.Argument(None, help="Arguments passed to claude"),
    mode: RunMode = typer.Option(
        RunMode.INTERACTIVE, "--mode", "-m", help="How to run the container"
    ),
) -> None:
    """Run claude in the first ready slot."""
    raise typer.Exit(_run_command(cli_ctx, run_command, list(args or []), mode))


@app.command(context_settings=PASSTHROUGH)
def shell(
    cli_ctx: typer.Context,
    args: list[str] | None = typer.Argument(None, help="'admin', or arguments passed to bash"),
) -> None:
    """
    Open a shell in the project image.

    Examples:

      slotbox shell                    # Throwaway shell

      slotbox shell admin              # sudo, no firewall; changes saved to the image
    """
    raise typer.Exit(_run_command(cli_ctx, shell_command, list(args or [])))


@app.command()
def rebuild(cli_ctx: typer.Context) -> None:
    """Rebuild the project image without the layer cache."""
    _run_command(cli_ctx, rebuild_command)


@app.command()
def status(cli_ctx: typer.Context) -> None:
    """Show profiles, image state and slots for this project."""
    _run_command(cli_ctx, status_command)


# Version callback
def version_callback(show_version: bool) -> None:
    """Show version and exit."""
    if show_version:
        console.print(f"slotbox v{__version__}")
        raise typer.Exit()


# Main callback
@app.callback()
def main(
    cli_ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Debug logging, also inside containers"
    ),
) -> None:
    """slotbox - sandboxed Claude Code per project."""
    cli_ctx.obj = {"verbose": verbose}
    if verbose:
        set_debug(True)


# Error handlers
def _handle_slotbox_error(error: SlotboxError) -> NoReturn:
    """Handle SlotboxError with formatted output."""
    console.print(f"\n[red]❌ Error:[/red] {error.message}\n")

    if error.suggestion:
        console.print("[bold]💡 Solution:[/bold]")
        console.print(f"   {error.suggestion}\n")

    if error.doc_link:
        console.print("[bold]📚 Documentation:[/bold]")
        console.print(f"   {error.doc_link}\n")

    # Specific error handling
    if isinstance(error, UnknownProfileError):
        console.print("[dim]Run [cyan]slotbox profiles[/cyan] to see available profiles[/dim]\n")
    elif isinstance(error, RuntimeUnavailableError):
        console.print("[dim]Make sure Docker is installed and running[/dim]\n")
    elif isinstance(error, NoSlotsError | NoReadySlotError):
        console.print("[dim]Run [cyan]slotbox slots[/cyan] to see slot states[/dim]\n")

    raise typer.Exit(1)


def _handle_unexpected_error(error: Exception) -> NoReturn:
    """Handle unexpected errors."""
    console.print(f"\n[red]❌ Unexpected Error:[/red] {error}\n")
    console.print("[dim]This might be a bug. Run again with --verbose for details.[/dim]\n")
    raise typer.Exit(1)


if __name__ == "__main__":
    app()
